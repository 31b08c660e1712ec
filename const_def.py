#!/usr/bin/env python3
"""
const_def.py - 方块视频编码器配置和常量定义
"""

# 帧类型标识
FRAME_TYPE_I = 'I'  # I帧（关键帧）
FRAME_TYPE_P = 'P'  # P帧（差分帧）

# 差分参考模式
DIFF_MODE_IFRAME = 'iframe'      # 与上一个I帧比较（减少堆叠）
DIFF_MODE_PREVIOUS = 'previous'  # 与上一帧比较
DIFF_MODES = (DIFF_MODE_IFRAME, DIFF_MODE_PREVIOUS)

# 区块排序方式
SORT_BY_AREA = 'area'  # 面积由大到小
SORT_BY_Y_X = 'y_x'    # 先y后x
SORT_ORDERS = (SORT_BY_AREA, SORT_BY_Y_X)

# 默认编码参数
DEFAULT_FRAME_RATE = 20
DEFAULT_INTERVAL_BETWEEN_FRAMES = 1  # tick
DEFAULT_RESIZE_FACTOR = 0.1
DEFAULT_I_FRAME_INTERVAL = 30
DEFAULT_DIFF_THRESHOLD = 0.25  # 变化比例超过此值强制I帧
DEFAULT_COLOR_THRESHOLD = 10   # 单像素通道最大差值阈值
DEFAULT_VIDEO_MODIFY_FACTOR = 1.0

# 局部搜索优化
DEFAULT_LOCAL_SEARCH_MAX_ITER = 1000
MERGE_COST_PER_BLOCK = 100.0
MERGE_COST_AREA_REWARD = 0.1
OPTIMIZER_LOGGING_MIN_BLOCKS = 100  # 区块数超过此值才打印优化日志

# 遮挡扫描
DEFAULT_OCCLUSION_WINDOW = 10  # 只扫描最近N帧
DEFAULT_OCCLUSION_GRID_SIZE = 10  # 空间网格大小（像素）

# text_display 输出参数
DEFAULT_PIXEL_SIZE = 0.2
DEFAULT_BASE_X = 0
DEFAULT_BASE_Y = 120
DEFAULT_BASE_Z = 0
DELTA_Z = 0.001   # 每个zIndex的深度间隔
FONT_SIZE = 8.0   # 单个字符缩放到一个像素所需倍率
BLOCK_CHAR = '█'
VIDEO_ENTITY_TAG = 'video_entity'
DEFAULT_IMAGE_TAG = 'generated_image'
DEFAULT_NAMESPACE = 'video'
FILL_GAP_OFFSETS = ((0, -0.05), (0.025, 0), (0.025, -0.05))

# 进度打印间隔
PROGRESS_EVERY_FRAMES = 10
