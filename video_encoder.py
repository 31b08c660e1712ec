#!/usr/bin/env python3

import argparse

from command_emitter import CommandEmitter
from const_def import (DEFAULT_FRAME_RATE, DEFAULT_INTERVAL_BETWEEN_FRAMES, DEFAULT_RESIZE_FACTOR,
                       DEFAULT_I_FRAME_INTERVAL, DEFAULT_DIFF_THRESHOLD, DEFAULT_COLOR_THRESHOLD,
                       DIFF_MODE_IFRAME, DIFF_MODES, SORT_BY_AREA, SORT_ORDERS,
                       DEFAULT_LOCAL_SEARCH_MAX_ITER, DEFAULT_OCCLUSION_WINDOW,
                       DEFAULT_OCCLUSION_GRID_SIZE, DEFAULT_PIXEL_SIZE, DEFAULT_BASE_X,
                       DEFAULT_BASE_Y, DEFAULT_BASE_Z, DEFAULT_VIDEO_MODIFY_FACTOR,
                       DEFAULT_NAMESPACE)
from video_encoder_core import VideoEncoderCore


def main(argv=None):
    pa = argparse.ArgumentParser(description="Encode a video into text_display block functions")
    pa.add_argument("input")
    pa.add_argument("--out", default="data/video",
                   help="输出目录（统计文件与临时帧）")
    pa.add_argument("--function-out", default=None,
                   help="函数输出目录（默认 <out>/function）")
    pa.add_argument("--fps", type=float, default=DEFAULT_FRAME_RATE)
    pa.add_argument("--interval-between-frames", type=int, default=DEFAULT_INTERVAL_BETWEEN_FRAMES,
                   help="播放时每帧间隔的tick数")
    pa.add_argument("--resize-factor", type=float, default=DEFAULT_RESIZE_FACTOR)
    pa.add_argument("--i-frame-interval", type=int, default=DEFAULT_I_FRAME_INTERVAL)
    pa.add_argument("--diff-threshold", type=float, default=DEFAULT_DIFF_THRESHOLD,
                   help="变化比例超过此值时提升为I帧")
    pa.add_argument("--color-threshold", type=int, default=DEFAULT_COLOR_THRESHOLD,
                   help="像素RGB最大差值超过此值视为变化")
    pa.add_argument("--diff-mode", choices=DIFF_MODES, default=DIFF_MODE_IFRAME)
    pa.add_argument("--sort-by", choices=SORT_ORDERS, default=SORT_BY_AREA)
    pa.add_argument("--max-iterations", type=int, default=DEFAULT_LOCAL_SEARCH_MAX_ITER,
                   help="局部搜索最大迭代次数")
    pa.add_argument("--occlusion-window", type=int, default=DEFAULT_OCCLUSION_WINDOW)
    pa.add_argument("--occlusion-grid-size", type=int, default=DEFAULT_OCCLUSION_GRID_SIZE)
    pa.add_argument("--pixel-size", type=float, default=DEFAULT_PIXEL_SIZE)
    pa.add_argument("--base", type=float, nargs=3, default=(DEFAULT_BASE_X, DEFAULT_BASE_Y, DEFAULT_BASE_Z),
                   metavar=("X", "Y", "Z"))
    pa.add_argument("--rotation-x", type=float, default=0.0)
    pa.add_argument("--rotation-y", type=float, default=0.0)
    pa.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    pa.add_argument("--video-modify-factor", type=float, default=DEFAULT_VIDEO_MODIFY_FACTOR,
                   help="只处理前面这一比例的帧")
    pa.add_argument("--fill-gaps", action="store_true",
                   help="在相邻偏移处重复绘制以填补缝隙")
    pa.add_argument("--keep-diff-images", action="store_true")
    pa.add_argument("--keep-frames", action="store_true",
                   help="保留抽出的临时帧")
    args = pa.parse_args(argv)

    emitter = CommandEmitter(
        pixel_size=args.pixel_size,
        base_x=args.base[0], base_y=args.base[1], base_z=args.base[2],
        rotation_x=args.rotation_x, rotation_y=args.rotation_y,
        namespace=args.namespace
    )

    try:
        encoder = VideoEncoderCore(
            resize_factor=args.resize_factor,
            i_frame_interval=args.i_frame_interval,
            diff_threshold=args.diff_threshold,
            color_threshold=args.color_threshold,
            diff_mode=args.diff_mode,
            sort_by=args.sort_by,
            max_iterations=args.max_iterations,
            occlusion_window=args.occlusion_window,
            occlusion_grid_size=args.occlusion_grid_size,
            emitter=emitter,
            keep_diff_images=args.keep_diff_images,
            retain_blocks=False
        )
    except ValueError as e:
        raise SystemExit(f"❌ 参数错误: {e}")

    encoder.generate_video_from_file(
        args.input, args.out, args.function_out,
        frame_rate=args.fps,
        interval_between_frames=args.interval_between_frames,
        video_modify_factor=args.video_modify_factor,
        fill_gaps=args.fill_gaps,
        keep_frames=args.keep_frames
    )


if __name__ == "__main__":
    main()
