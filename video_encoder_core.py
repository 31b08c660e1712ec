#!/usr/bin/env python3

import pathlib
import shutil
import time
from concurrent.futures import ThreadPoolExecutor

from command_emitter import CommandEmitter
from const_def import (DEFAULT_RESIZE_FACTOR, DEFAULT_I_FRAME_INTERVAL, DEFAULT_DIFF_THRESHOLD,
                       DEFAULT_COLOR_THRESHOLD, DIFF_MODE_IFRAME, SORT_BY_AREA,
                       DEFAULT_LOCAL_SEARCH_MAX_ITER, DEFAULT_OCCLUSION_WINDOW,
                       DEFAULT_OCCLUSION_GRID_SIZE, DEFAULT_FRAME_RATE,
                       DEFAULT_INTERVAL_BETWEEN_FRAMES, DEFAULT_VIDEO_MODIFY_FACTOR,
                       PROGRESS_EVERY_FRAMES)
from frame_diff import FrameDiffEngine, ReferenceCache
from image_io import decode_image, write_png
from image_processor import group_pixel_grid
from keyframe_scheduler import KeyframeScheduler
from occlusion_scanner import OcclusionScanner
from video_encoder_stats import EncodingStats
from video_encoder_utils import extract_frames_from_video, prepare_output_dir


class VideoEncoderCore:
    """逐帧顺序处理：I/P帧判定 → 分割优化 → 遮挡扫描 → 写出指令文件"""

    def __init__(self, resize_factor: float = DEFAULT_RESIZE_FACTOR,
                 i_frame_interval: int = DEFAULT_I_FRAME_INTERVAL,
                 diff_threshold: float = DEFAULT_DIFF_THRESHOLD,
                 color_threshold: int = DEFAULT_COLOR_THRESHOLD,
                 diff_mode: str = DIFF_MODE_IFRAME,
                 sort_by: str = SORT_BY_AREA,
                 max_iterations: int = DEFAULT_LOCAL_SEARCH_MAX_ITER,
                 occlusion_window: int = DEFAULT_OCCLUSION_WINDOW,
                 occlusion_grid_size: int = DEFAULT_OCCLUSION_GRID_SIZE,
                 emitter: CommandEmitter = None,
                 keep_diff_images: bool = False,
                 retain_blocks: bool = True,
                 write_workers: int = 4,
                 decoder=decode_image):
        if resize_factor <= 0:
            raise ValueError(f"缩放比例必须为正数: {resize_factor}")
        self.resize_factor = resize_factor
        self.i_frame_interval = i_frame_interval
        self.diff_threshold = diff_threshold
        self.diff_mode = diff_mode
        self.sort_by = sort_by
        self.max_iterations = max_iterations
        self.keep_diff_images = keep_diff_images
        self.retain_blocks = retain_blocks
        self.write_workers = write_workers
        self.decoder = decoder

        # 参数校验在构造时完成
        KeyframeScheduler(i_frame_interval, diff_threshold, diff_mode)
        self.cache = ReferenceCache()
        self.diff_engine = FrameDiffEngine(color_threshold, resize_factor,
                                           cache=self.cache, decoder=decoder)
        self.scanner = OcclusionScanner(occlusion_window, occlusion_grid_size)
        self.emitter = emitter if emitter is not None else CommandEmitter()
        self.encoding_stats = EncodingStats()

    def encode_video(self, frame_paths: list, function_output_dir) -> list:
        """处理全部帧并写出 frame_<n>.mcfunction，返回 FrameInfo 列表"""
        function_output_dir = pathlib.Path(function_output_dir)
        function_output_dir.mkdir(parents=True, exist_ok=True)

        scheduler = KeyframeScheduler(self.i_frame_interval, self.diff_threshold, self.diff_mode)
        frame_infos = []
        pending_writes = []
        total = len(frame_paths)

        print(f"🎬 处理 {total} 帧: I帧间隔 {self.i_frame_interval}, "
              f"差异阈值 {self.diff_threshold}, 差分模式 {self.diff_mode}")

        start_time = time.time()
        try:
            with ThreadPoolExecutor(max_workers=self.write_workers) as writer:
                for frame_idx, frame_path in enumerate(frame_paths):
                    if frame_idx % PROGRESS_EVERY_FRAMES == 0 or frame_idx == total - 1:
                        print(f"  处理帧 {frame_idx + 1}/{total} "
                              f"({(frame_idx + 1) / total * 100:.1f}%)")

                    if scheduler.is_scheduled_keyframe(frame_idx):
                        if frame_infos:
                            self._flush_group(frame_infos, scheduler.group_start,
                                              function_output_dir, writer, pending_writes)
                        info = self._encode_keyframe(scheduler, frame_idx, frame_path,
                                                     diff_ratio=1.0, forced=True)
                    else:
                        reference = scheduler.reference_for_delta()
                        diff = self.diff_engine.diff_paths(
                            reference, frame_path, use_cache=scheduler.uses_reference_cache)

                        if scheduler.should_promote(diff.diff_ratio):
                            print(f"  ⚡ 帧 {frame_idx} 差异 {diff.diff_ratio*100:.1f}% "
                                  f">= {self.diff_threshold*100:.1f}%，提升为I帧")
                            self._flush_group(frame_infos, scheduler.group_start,
                                              function_output_dir, writer, pending_writes)
                            info = self._encode_keyframe(scheduler, frame_idx, frame_path,
                                                         diff_ratio=diff.diff_ratio, forced=False,
                                                         grid=diff.current_grid)
                        else:
                            info = self._encode_delta(scheduler, frame_idx, diff,
                                                      function_output_dir)

                    frame_infos.append(info)
                    scheduler.advance(frame_path)

                if frame_infos:
                    self._flush_group(frame_infos, scheduler.group_start,
                                      function_output_dir, writer, pending_writes)

            # 后台写入的异常在这里抛出
            for future in pending_writes:
                future.result()
        finally:
            self.encoding_stats.record_cache(self.cache)
            self.cache.clear()
            print("🗑️  参考帧缓存已清空")

        self.encoding_stats.add_timing("帧处理", time.time() - start_time)
        return frame_infos

    def _encode_keyframe(self, scheduler, frame_idx, frame_path, diff_ratio, forced, grid=None):
        if grid is None:
            # 计划I帧不入缓存，第一次被当作差分参考时才载入
            grid = self.decoder(frame_path, self.resize_factor)
        elif scheduler.uses_reference_cache:
            self.diff_engine.promote(frame_path, grid)
        scheduler.mark_keyframe(frame_path, frame_idx)

        blocks = group_pixel_grid(grid, self.sort_by, self.max_iterations)
        info = scheduler.classify(frame_idx, True, diff_ratio, blocks, forced=forced)
        self.encoding_stats.add_i_frame(info.block_count, is_forced=forced)
        print(f"  🔑 帧 {frame_idx}: I帧, {info.block_count} 个区块")
        return info

    def _encode_delta(self, scheduler, frame_idx, diff, function_output_dir):
        diff_grid = diff.to_grid()
        if self.keep_diff_images:
            write_png(diff_grid, function_output_dir / f"frame_{frame_idx}_diff.png")

        blocks = group_pixel_grid(diff_grid, self.sort_by, self.max_iterations)
        info = scheduler.classify(frame_idx, False, diff.diff_ratio, blocks)
        self.encoding_stats.add_p_frame(info.block_count, diff.diff_ratio)
        print(f"  帧 {frame_idx}: P帧, 差异 {diff.diff_ratio*100:.2f}%, {info.block_count} 个区块")
        return info

    def _flush_group(self, frame_infos, group_start, function_output_dir, writer, pending_writes):
        """关键帧组结束：逐帧遮挡扫描，然后提交写入"""
        group = frame_infos[group_start:]
        for offset, info in enumerate(group):
            if info.is_keyframe:
                continue
            covered = self.scanner.scan(frame_infos[:group_start + offset + 1], group_start)
            info.covered_tags = frozenset(covered)
            if covered:
                self.encoding_stats.add_covered(len(covered))
                print(f"  🫥 帧 {info.frame_number}: 剔除 {len(covered)} 个被遮挡区域")

        for info in group:
            pending_writes.append(
                writer.submit(self.emitter.write_frame_function, info, function_output_dir))

        if not self.retain_blocks:
            # 写入任务持有区块引用，等写完再释放
            for future, info in zip(pending_writes[-len(group):], group):
                future.add_done_callback(lambda _f, info=info: info.evict_blocks())

    def generate_video_from_file(self, video_path, output_dir, function_output_dir=None,
                                 frame_rate: float = DEFAULT_FRAME_RATE,
                                 interval_between_frames: int = DEFAULT_INTERVAL_BETWEEN_FRAMES,
                                 video_modify_factor: float = DEFAULT_VIDEO_MODIFY_FACTOR,
                                 fill_gaps: bool = False,
                                 keep_frames: bool = False) -> list:
        """完整流程：抽帧 → 逐帧处理 → 控制函数 → 统计"""
        if not 0 < video_modify_factor <= 1:
            raise ValueError(f"视频截取比例必须在 (0, 1] 内: {video_modify_factor}")

        total_start = time.time()
        output_dir = pathlib.Path(output_dir)
        if function_output_dir is None:
            function_output_dir = output_dir / "function"
        function_output_dir = prepare_output_dir(function_output_dir)
        frames_dir = prepare_output_dir(output_dir / "temp_frames")
        frames_output_dir = prepare_output_dir(function_output_dir / "frames")

        extract_start = time.time()
        frame_paths = extract_frames_from_video(video_path, frames_dir, frame_rate)
        self.encoding_stats.add_timing("抽帧", time.time() - extract_start)

        keep_count = max(1, int(len(frame_paths) * video_modify_factor))
        if keep_count < len(frame_paths):
            print(f"✂️  只处理前 {keep_count}/{len(frame_paths)} 帧")
            frame_paths = frame_paths[:keep_count]

        frame_infos = self.encode_video(frame_paths, frames_output_dir)

        self.emitter.write_control_functions(function_output_dir, len(frame_infos) - 1,
                                             interval_between_frames, fill_gaps)
        stats_path = self.encoding_stats.write_json(output_dir / "video_stats.json")
        print(f"✓ 已生成控制函数与统计文件: {stats_path}")

        if not keep_frames:
            shutil.rmtree(frames_dir)

        self.encoding_stats.add_timing("总计", time.time() - total_start)
        self.encoding_stats.print_summary()
        return frame_infos
