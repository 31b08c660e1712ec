#!/usr/bin/env python3
"""
block_optimizer.py - 区块合并优化
阶段1: 贪心合并相邻同色区块
阶段2: 局部搜索（偶数轮再尝试合并，奇数轮留给分割策略）
"""

from block_segmenter import Block
from const_def import (DEFAULT_LOCAL_SEARCH_MAX_ITER, MERGE_COST_PER_BLOCK,
                       MERGE_COST_AREA_REWARD)


class SplitStrategy:
    """分割探索策略接口

    propose() 返回候选区块列表或 None。默认实现不做任何分割，
    局部搜索的奇数轮因此总是被拒绝。
    """

    def propose(self, blocks: list):
        return None


def _bboxes_touch(block1: Block, block2: Block) -> bool:
    """包围盒相距超过一个像素时不可能相邻"""
    return (block1.min_x <= block2.max_x + 1 and block2.min_x <= block1.max_x + 1 and
            block1.min_y <= block2.max_y + 1 and block2.min_y <= block1.max_y + 1)


def can_merge_blocks(block1: Block, block2: Block) -> bool:
    """检查两个区块是否可以合并（同色且四连通相邻）"""
    if block1.color != block2.color:
        return False
    if not _bboxes_touch(block1, block2):
        return False

    # 遍历较小区块的像素，在较大区块的坐标集合中查找邻居
    small, large = (block1, block2) if block1.area <= block2.area else (block2, block1)
    present = large.pixels
    for x, y in small.pixels:
        if ((x - 1, y) in present or (x + 1, y) in present or
                (x, y - 1) in present or (x, y + 1) in present):
            return True
    return False


def merge_blocks(block1: Block, block2: Block) -> Block:
    """合并两个区块：像素取并集，颜色不变，保留较小的zIndex"""
    return Block(block1.color, block1.pixels | block2.pixels,
                 min(block1.z_index, block2.z_index))


def try_merge_operation(blocks: list):
    """尝试合并第一对相邻同色区块，返回新列表；找不到时返回 None"""
    color_groups = {}
    for index, block in enumerate(blocks):
        color_groups.setdefault(block.color, []).append(index)

    for group in color_groups.values():
        if len(group) < 2:
            continue
        for i in range(len(group)):
            for j in range(i + 1, len(group)):
                block1 = blocks[group[i]]
                block2 = blocks[group[j]]
                if can_merge_blocks(block1, block2):
                    merged = merge_blocks(block1, block2)
                    skip = (group[i], group[j])
                    new_blocks = [b for k, b in enumerate(blocks) if k not in skip]
                    new_blocks.append(merged)
                    return new_blocks

    return None


def calculate_cost(blocks: list) -> float:
    """成本越小越好：主要看区块数量，面积大的区块给予奖励"""
    cost = len(blocks) * MERGE_COST_PER_BLOCK
    for block in blocks:
        cost -= block.area * MERGE_COST_AREA_REWARD
    return cost


def greedy_merge(blocks: list, enable_logging: bool = False) -> tuple:
    """阶段1：不断合并直到无法再合并，返回 (区块列表, 合并次数)"""
    current = list(blocks)
    merges = 0

    if enable_logging:
        print(f"\n🎯 阶段1: 贪心合并 (初始 {len(current)} 个区块)")

    while True:
        merged = try_merge_operation(current)
        if merged is None:
            break
        current = merged
        merges += 1
        if enable_logging and merges % 10 == 0:
            print(f"  已合并 {merges} 次 → {len(current)} 个区块")

    if enable_logging:
        print(f"✓ 阶段1完成: 合并 {merges} 次, 剩余 {len(current)} 个区块")

    return current, merges


def local_search_optimization(initial_blocks: list,
                              max_iterations: int = DEFAULT_LOCAL_SEARCH_MAX_ITER,
                              enable_logging: bool = False,
                              split_strategy: SplitStrategy = None) -> list:
    """贪心初始化 + 局部搜索，返回按最终顺序重新编号zIndex的新区块列表"""
    if max_iterations < 0:
        raise ValueError(f"最大迭代次数不能为负: {max_iterations}")
    if split_strategy is None:
        split_strategy = SplitStrategy()

    current, _ = greedy_merge(initial_blocks, enable_logging)

    current_cost = calculate_cost(current)
    improvements = 0
    # 列表未变化时合并操作的结果不会变，跳过重复扫描
    merge_exhausted = False

    if enable_logging:
        print(f"\n🔍 阶段2: 局部搜索 (初始成本: {current_cost:.2f})")

    for iteration in range(max_iterations):
        if iteration % 2 == 0:
            if merge_exhausted:
                continue
            neighbor = try_merge_operation(current)
            if neighbor is None:
                merge_exhausted = True
        else:
            neighbor = split_strategy.propose(current)

        if neighbor is None:
            continue

        neighbor_cost = calculate_cost(neighbor)
        if neighbor_cost < current_cost:
            current = neighbor
            current_cost = neighbor_cost
            merge_exhausted = False
            improvements += 1
            if enable_logging and improvements % 10 == 0:
                print(f"  第{iteration}轮: 成本={current_cost:.2f}, "
                      f"区块={len(current)}, 改进={improvements}")

    if enable_logging:
        print(f"✓ 阶段2完成: {improvements} 次改进")
        if initial_blocks:
            reduction = (len(initial_blocks) - len(current)) / len(initial_blocks) * 100
            print(f"\n📊 最终结果: {len(initial_blocks)} → {len(current)} 个区块 "
                  f"(减少 {reduction:.1f}%)")

    return [block.with_z_index(index) for index, block in enumerate(current)]
