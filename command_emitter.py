#!/usr/bin/env python3
"""
command_emitter.py - 输出文件生成（.mcfunction）
把区块转成 text_display 的 summon/kill 指令，并生成播放控制函数
"""

import math
import pathlib
import textwrap

from const_def import (DEFAULT_PIXEL_SIZE, DEFAULT_BASE_X, DEFAULT_BASE_Y, DEFAULT_BASE_Z,
                       DELTA_Z, FONT_SIZE, BLOCK_CHAR, VIDEO_ENTITY_TAG, DEFAULT_IMAGE_TAG,
                       DEFAULT_NAMESPACE, FILL_GAP_OFFSETS, DEFAULT_INTERVAL_BETWEEN_FRAMES)


def _fmt(value: float) -> str:
    text = f"{value:.6f}".rstrip('0').rstrip('.')
    return "0" if text in ("", "-0") else text


def quaternion_from_axis_angle(axis: tuple, degrees: float) -> tuple:
    """绕轴旋转的四元数 [x, y, z, w]"""
    if degrees == 0:
        return (0.0, 0.0, 0.0, 1.0)
    half = math.radians(degrees) / 2
    s = math.sin(half)
    return (axis[0] * s, axis[1] * s, axis[2] * s, math.cos(half))


def _relative(value: float) -> str:
    return "~" if value == 0 else f"~{_fmt(value)}"


def _float_list(values) -> str:
    return ','.join(f"{_fmt(v)}f" for v in values)


def write_text(path, text: str) -> pathlib.Path:
    path = pathlib.Path(path)
    with path.open("w", encoding="utf-8") as f:
        f.write(text)
    return path


class CommandEmitter:
    """text_display 指令生成器"""

    def __init__(self, pixel_size: float = DEFAULT_PIXEL_SIZE,
                 base_x: float = DEFAULT_BASE_X, base_y: float = DEFAULT_BASE_Y,
                 base_z: float = DEFAULT_BASE_Z, rotation_x: float = 0.0,
                 rotation_y: float = 0.0, namespace: str = DEFAULT_NAMESPACE):
        if pixel_size <= 0:
            raise ValueError(f"像素大小必须为正数: {pixel_size}")
        self.pixel_size = pixel_size
        self.base = (base_x, base_y, base_z)
        self.namespace = namespace
        # X轴旋转(俯仰) 与 Y轴旋转(偏航)
        self.left_rotation = quaternion_from_axis_angle((1, 0, 0), rotation_x)
        self.right_rotation = quaternion_from_axis_angle((0, 1, 0), rotation_y)

    def summon_command(self, block, tag: str, region_tag: str) -> str:
        center_x = (block.min_x + block.max_x) / 2
        bottom_y = block.min_y + block.height
        translation = (center_x * self.pixel_size,
                       -bottom_y * self.pixel_size,
                       block.z_index * DELTA_Z)
        scale = (block.width * self.pixel_size * FONT_SIZE,
                 block.height * self.pixel_size * FONT_SIZE,
                 1)
        base_x, base_y, base_z = self.base
        return (
            f'summon text_display {_fmt(base_x)} {_fmt(base_y)} {_fmt(base_z)} '
            f'{{Tags:["{tag}","{region_tag}","{VIDEO_ENTITY_TAG}"],'
            f'text:{{"text":"{BLOCK_CHAR}","color":"{block.color_hex}"}},'
            f'background:0x00000000,'
            f'transformation:{{left_rotation:[{_float_list(self.left_rotation)}],'
            f'right_rotation:[{_float_list(self.right_rotation)}],'
            f'translation:[{_float_list(translation)}],'
            f'scale:[{_float_list(scale)}]}},'
            f'billboard:"fixed",view_range:50000f}}'
        )

    def render_blocks(self, blocks: list, tag: str = DEFAULT_IMAGE_TAG, frame_id: int = None,
                      clear_previous_frames: bool = False, covered_tags=()) -> str:
        """生成单帧（或单张图像）的指令文本

        第k个区块的区域标签为 "<tag>_<k>"，k 是区块在列表中的位置。
        """
        header = [f"# Generated image from blocks ({len(blocks)} entities)"]
        body = []

        if clear_previous_frames and frame_id:
            header.append(f"# Clear all frames before frame {frame_id}")
            body += [f"execute as @e[tag={VIDEO_ENTITY_TAG},scores={{frame_id=..{frame_id - 1}}}] "
                     f"run kill @s", ""]
        else:
            # 图像、第0帧与P帧只清除同标签的旧实体
            header.append(f"# Clear existing entities with tag {tag}")
            body += [f"kill @e[tag={tag}]", ""]

        if covered_tags:
            body.append("# Remove covered entities (occlusion scan)")
            for covered in sorted(covered_tags):
                body.append(f"kill @e[type=text_display,tag={covered}]")
            body.append("")

        tagged = sorted(((block, f"{tag}_{index}") for index, block in enumerate(blocks)),
                        key=lambda item: item[0].z_index)
        for block, region_tag in tagged:
            body.append(self.summon_command(block, tag, region_tag))

        if frame_id is not None:
            body += ["", "# Set frame_id scoreboard for all entities",
                     f"scoreboard players set @e[tag={tag}] frame_id {frame_id}"]

        return '\n'.join(header + [""] + body) + '\n'

    def write_image_function(self, blocks: list, path, tag: str = DEFAULT_IMAGE_TAG) -> pathlib.Path:
        path = write_text(path, self.render_blocks(blocks, tag))
        print(f"✓ 已生成 {len(blocks)} 个 text_display 实体的函数: {path}")
        return path

    def write_frame_function(self, frame_info, output_dir) -> pathlib.Path:
        """写出 frames/frame_<n>.mcfunction"""
        text = self.render_blocks(
            frame_info.blocks, frame_info.tag, frame_id=frame_info.frame_number,
            clear_previous_frames=frame_info.is_keyframe,
            covered_tags=frame_info.covered_tags)
        return write_text(pathlib.Path(output_dir) / f"frame_{frame_info.frame_number}.mcfunction", text)

    def write_control_functions(self, output_dir, last_frame_index: int,
                                interval_between_frames: int = DEFAULT_INTERVAL_BETWEEN_FRAMES,
                                fill_gaps: bool = False) -> list:
        """生成播放控制函数：setup/reset/run_video/run_video_frame/play/pause/run_frame"""
        output_dir = pathlib.Path(output_dir)
        ns = self.namespace

        run_frame_extra = ""
        run_video_extra = ""
        if fill_gaps:
            run_video_extra = '\n'.join(
                f"execute positioned {_relative(dx)} {_relative(dy)} ~ run function "
                f"{ns}:run_video_frame with storage {ns}:data data"
                for dx, dy in FILL_GAP_OFFSETS) + '\n'
            run_frame_extra = '\n'.join(
                f"$execute positioned {_relative(dx)} {_relative(dy)} ~ run function "
                f"{ns}:frames/frame_$(frameIndex)"
                for dx, dy in FILL_GAP_OFFSETS) + '\n'

        files = {
            "setup_video.mcfunction": textwrap.dedent(f"""\
                # Video Setup
                scoreboard objectives add video_system dummy
                scoreboard objectives add frame_id dummy "Frame ID"
                scoreboard players set current_frame video_system 0
                scoreboard players set last_frame video_system {last_frame_index}
                scoreboard players set video_playing video_system 0
                data merge storage {ns}:data {{data:{{frameIndex:0}}}}
                tellraw @a {{"text":"Video system initialized","color":"green"}}
                """),
            "reset_video.mcfunction": textwrap.dedent(f"""\
                # Reset Video
                scoreboard players set current_frame video_system 0
                scoreboard players set video_playing video_system 0
                data merge storage {ns}:data {{data:{{frameIndex:0}}}}
                kill @e[tag={VIDEO_ENTITY_TAG}]
                tellraw @a {{"text":"Video reset","color":"yellow"}}
                """),
            "run_video.mcfunction": textwrap.dedent(f"""\
                # Run Video Loop
                execute if score current_frame video_system >= last_frame video_system run scoreboard players set video_playing video_system 0
                execute if score video_playing video_system matches 0 run return run function {ns}:reset_video

                scoreboard players add current_frame video_system 1
                execute store result storage {ns}:data data.frameIndex int 1 run scoreboard players get current_frame video_system

                function {ns}:run_video_frame with storage {ns}:data data
                """) + run_video_extra + f"\nschedule function {ns}:run_video {interval_between_frames}t\n",
            "run_video_frame.mcfunction": textwrap.dedent(f"""\
                # Run Single Frame
                $function {ns}:frames/frame_$(frameIndex)
                """),
            "play_video.mcfunction": textwrap.dedent(f"""\
                # Play Video
                scoreboard players set video_playing video_system 1
                function {ns}:run_video
                tellraw @a {{"text":"Playing video","color":"green"}}
                """),
            "pause_video.mcfunction": textwrap.dedent("""\
                # Pause Video
                scoreboard players set video_playing video_system 0
                tellraw @a {"text":"Video paused","color":"yellow"}
                """),
            "run_frame.mcfunction": textwrap.dedent(f"""\
                # Run Specific Frame
                $function {ns}:frames/frame_$(frameIndex)
                """) + run_frame_extra,
        }

        return [write_text(output_dir / name, text) for name, text in files.items()]
