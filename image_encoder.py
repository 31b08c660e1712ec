#!/usr/bin/env python3

import argparse
import pathlib
from concurrent.futures import wait

from command_emitter import CommandEmitter
from const_def import (SORT_BY_AREA, SORT_ORDERS, DEFAULT_LOCAL_SEARCH_MAX_ITER,
                       DEFAULT_PIXEL_SIZE, DEFAULT_BASE_X, DEFAULT_BASE_Y, DEFAULT_BASE_Z)
from image_io import decode_image, rebuild_image, write_png
from image_processor import write_blocks_json
from worker_pool import ImageWorkerPool, WorkerError


def main(argv=None):
    pa = argparse.ArgumentParser(description="Group images into same-color blocks and emit text_display functions")
    pa.add_argument("inputs", nargs="+")
    pa.add_argument("--out", default="data/images")
    pa.add_argument("--resize-factor", type=float, default=1.0)
    pa.add_argument("--sort-by", choices=SORT_ORDERS, default=SORT_BY_AREA)
    pa.add_argument("--max-iterations", type=int, default=DEFAULT_LOCAL_SEARCH_MAX_ITER)
    pa.add_argument("--max-workers", type=int, default=None,
                   help="进程数（默认为CPU核心数）")
    pa.add_argument("--pixel-size", type=float, default=DEFAULT_PIXEL_SIZE)
    pa.add_argument("--base", type=float, nargs=3, default=(DEFAULT_BASE_X, DEFAULT_BASE_Y, DEFAULT_BASE_Z),
                   metavar=("X", "Y", "Z"))
    pa.add_argument("--rebuild", action="store_true",
                   help="用分群结果重建图像以便核对")
    pa.add_argument("--rebuild-scale", type=int, default=1)
    args = pa.parse_args(argv)

    out_dir = pathlib.Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    emitter = CommandEmitter(pixel_size=args.pixel_size,
                             base_x=args.base[0], base_y=args.base[1], base_z=args.base[2])

    with ImageWorkerPool(max_workers=args.max_workers) as pool:
        print(f"使用 {pool.get_pool_size()} 个进程并行处理 {len(args.inputs)} 张图像")
        futures = pool.process_images(args.inputs, args.resize_factor, args.sort_by,
                                      args.max_iterations)
        wait(futures)

    failures = 0
    for image_path, future in zip(args.inputs, futures):
        stem = pathlib.Path(image_path).stem
        try:
            blocks = future.result()
        except WorkerError as e:
            failures += 1
            print(f"⚠️ {image_path} 处理失败: {e}")
            continue

        write_blocks_json(blocks, out_dir / f"{stem}_groups.json")
        emitter.write_image_function(blocks, out_dir / f"{stem}.mcfunction", tag=stem)

        if args.rebuild:
            grid = decode_image(image_path, args.resize_factor)
            rebuilt = rebuild_image(blocks, grid.width, grid.height, args.rebuild_scale)
            write_png(rebuilt, out_dir / f"{stem}_rebuilt.png")
        print(f"✓ {image_path}: {len(blocks)} 个区块")

    if failures:
        raise SystemExit(f"❌ {failures}/{len(args.inputs)} 张图像处理失败")


if __name__ == "__main__":
    main()
