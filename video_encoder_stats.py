#!/usr/bin/env python3

import json
import pathlib
import statistics


class EncodingStats:
    """编码统计类"""
    def __init__(self):
        # 帧统计
        self.total_frames_processed = 0
        self.total_i_frames = 0
        self.forced_i_frames = 0  # 定期I帧（间隔倍数）
        self.threshold_i_frames = 0  # 超阈值提升的I帧
        self.total_p_frames = 0

        # 区块统计
        self.total_blocks = 0
        self.i_frame_blocks = 0
        self.p_frame_blocks = 0
        self.total_covered_entities = 0

        # P帧差异
        self.p_frame_diff_ratios = []
        self.p_frame_block_counts = []

        # 参考帧缓存
        self.cache_hits = 0
        self.cache_misses = 0

        # 耗时（秒）
        self.timings = {}

    def add_i_frame(self, block_count, is_forced=True):
        self.total_frames_processed += 1
        self.total_i_frames += 1
        if is_forced:
            self.forced_i_frames += 1
        else:
            self.threshold_i_frames += 1
        self.total_blocks += block_count
        self.i_frame_blocks += block_count

    def add_p_frame(self, block_count, diff_ratio):
        self.total_frames_processed += 1
        self.total_p_frames += 1
        self.total_blocks += block_count
        self.p_frame_blocks += block_count
        self.p_frame_diff_ratios.append(diff_ratio)
        self.p_frame_block_counts.append(block_count)

    def add_covered(self, count):
        self.total_covered_entities += count

    def record_cache(self, cache):
        if cache is not None:
            self.cache_hits = cache.hits
            self.cache_misses = cache.misses

    def add_timing(self, name, seconds):
        self.timings[name] = self.timings.get(name, 0.0) + seconds

    @property
    def average_diff_ratio(self):
        if not self.p_frame_diff_ratios:
            return 0.0
        return statistics.mean(self.p_frame_diff_ratios)

    @property
    def optimization_rate(self):
        """被遮挡剔除的实体占全部实体的比例"""
        if self.total_blocks == 0:
            return 0.0
        return self.total_covered_entities / self.total_blocks

    def to_dict(self):
        return {
            'totalFrames': self.total_frames_processed,
            'iFrames': self.total_i_frames,
            'forcedIFrames': self.forced_i_frames,
            'thresholdIFrames': self.threshold_i_frames,
            'pFrames': self.total_p_frames,
            'averageDiffRatio': self.average_diff_ratio,
            'totalBlocks': self.total_blocks,
            'totalCoveredEntities': self.total_covered_entities,
            'optimizationRate': self.optimization_rate,
            'cacheHits': self.cache_hits,
            'cacheMisses': self.cache_misses,
            'timings': dict(self.timings),
        }

    def write_json(self, path):
        path = pathlib.Path(path)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        return path

    def print_summary(self):
        total_frames = self.total_frames_processed
        print(f"\n📊 编码统计报告")
        print(f"=" * 60)

        if total_frames == 0:
            print("   没有处理任何帧")
            return

        # 基本统计
        print(f"🎬 帧统计:")
        print(f"   视频帧数: {total_frames}")
        print(f"   I帧: {self.total_i_frames} ({self.total_i_frames/total_frames*100:.1f}%)")
        print(f"     - 定期I帧: {self.forced_i_frames}")
        print(f"     - 超阈值I帧: {self.threshold_i_frames}")
        print(f"   P帧: {self.total_p_frames} ({self.total_p_frames/total_frames*100:.1f}%)")

        # 区块统计
        print(f"\n🧱 区块统计:")
        print(f"   总区块数: {self.total_blocks:,}")
        if self.total_i_frames > 0:
            print(f"   平均I帧区块数: {self.i_frame_blocks/self.total_i_frames:.1f}")
        if self.total_p_frames > 0:
            print(f"   平均P帧区块数: {self.p_frame_blocks/self.total_p_frames:.1f}")
        print(f"   被遮挡剔除: {self.total_covered_entities:,} ({self.optimization_rate*100:.1f}%)")

        # P帧差异统计
        if self.p_frame_diff_ratios:
            print(f"\n⚡ P帧差异分析:")
            print(f"   平均差异: {self.average_diff_ratio*100:.2f}%")
            print(f"   中位数差异: {statistics.median(self.p_frame_diff_ratios)*100:.2f}%")
            print(f"   最大差异: {max(self.p_frame_diff_ratios)*100:.2f}%")
            print(f"   最小差异: {min(self.p_frame_diff_ratios)*100:.2f}%")

        # 缓存
        lookups = self.cache_hits + self.cache_misses
        if lookups > 0:
            print(f"\n🗄️  参考帧缓存:")
            print(f"   命中: {self.cache_hits} / {lookups} ({self.cache_hits/lookups*100:.1f}%)")

        # 耗时
        if self.timings:
            print(f"\n⏱️  性能统计:")
            for name, seconds in self.timings.items():
                print(f"   {name}: {seconds:.2f}秒")
