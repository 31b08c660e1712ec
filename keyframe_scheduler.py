#!/usr/bin/env python3
"""
keyframe_scheduler.py - 关键帧调度
决定每一帧是I帧（完整分割）还是P帧（只分割差分），并维护跨帧递增的zIndex
"""

from const_def import (FRAME_TYPE_I, FRAME_TYPE_P, DIFF_MODE_IFRAME, DIFF_MODES,
                       DEFAULT_I_FRAME_INTERVAL, DEFAULT_DIFF_THRESHOLD)


class FrameInfo:
    """单帧处理结果"""

    def __init__(self, frame_number: int, frame_type: str, diff_ratio: float,
                 blocks: list, forced: bool = False):
        self.frame_number = frame_number
        self.frame_type = frame_type
        self.diff_ratio = diff_ratio
        self.blocks = blocks
        self.block_count = len(blocks)
        self.forced = forced  # 定期I帧（而非超阈值提升）
        self.covered_tags = frozenset()

    @property
    def is_keyframe(self) -> bool:
        return self.frame_type == FRAME_TYPE_I

    @property
    def tag(self) -> str:
        if self.is_keyframe:
            return f"video_frame_{self.frame_number}"
        return f"video_frame_{self.frame_number}_diff"

    def region_tag(self, index: int) -> str:
        return f"{self.tag}_{index}"

    def tagged_blocks(self):
        for index, block in enumerate(self.blocks):
            yield block, self.region_tag(index)

    def evict_blocks(self):
        """关键帧组结束后释放区块"""
        self.blocks = []

    def __repr__(self):
        return (f"FrameInfo({self.frame_number}, {self.frame_type}, "
                f"diff={self.diff_ratio:.4f}, blocks={self.block_count})")


class KeyframeScheduler:
    """I/P帧状态机

    - 第0帧、间隔倍数帧、尚无关键帧参考时为I帧
    - 其余帧先与参考帧做差分，变化比例 >= diff_threshold 时提升为I帧
    """

    def __init__(self, i_frame_interval: int = DEFAULT_I_FRAME_INTERVAL,
                 diff_threshold: float = DEFAULT_DIFF_THRESHOLD,
                 diff_mode: str = DIFF_MODE_IFRAME):
        if i_frame_interval < 1:
            raise ValueError(f"I帧间隔必须 >= 1: {i_frame_interval}")
        if not 0.0 <= diff_threshold <= 1.0:
            raise ValueError(f"差异阈值必须在 [0, 1] 内: {diff_threshold}")
        if diff_mode not in DIFF_MODES:
            raise ValueError(f"未知的差分模式: {diff_mode}")
        self.i_frame_interval = i_frame_interval
        self.diff_threshold = diff_threshold
        self.diff_mode = diff_mode

        self.last_keyframe_ref = None
        self.prev_frame_ref = None
        self.group_start = 0  # 当前关键帧组在帧列表中的起始位置
        self.max_z_index_used = 0

    def is_scheduled_keyframe(self, frame_idx: int) -> bool:
        return (frame_idx == 0 or frame_idx % self.i_frame_interval == 0 or
                self.last_keyframe_ref is None)

    def reference_for_delta(self):
        """P帧的差分参考：上一个I帧或上一帧"""
        if self.diff_mode == DIFF_MODE_IFRAME:
            return self.last_keyframe_ref
        return self.prev_frame_ref

    @property
    def uses_reference_cache(self) -> bool:
        return self.diff_mode == DIFF_MODE_IFRAME

    def should_promote(self, diff_ratio: float) -> bool:
        return diff_ratio >= self.diff_threshold

    def mark_keyframe(self, frame_ref, group_start: int):
        self.last_keyframe_ref = frame_ref
        self.group_start = group_start

    def advance(self, frame_ref):
        self.prev_frame_ref = frame_ref

    def apply_z_offset(self, blocks: list) -> list:
        """加上累计偏移，保证后面的帧永远画在前面的帧之上"""
        shifted = [block.with_z_index(block.z_index + self.max_z_index_used)
                   for block in blocks]
        if shifted:
            self.max_z_index_used = max(block.z_index for block in shifted) + 1
        return shifted

    def classify(self, frame_number: int, is_keyframe: bool, diff_ratio: float,
                 blocks: list, forced: bool = False) -> FrameInfo:
        frame_type = FRAME_TYPE_I if is_keyframe else FRAME_TYPE_P
        return FrameInfo(frame_number, frame_type, diff_ratio,
                         self.apply_z_offset(blocks), forced=forced)
