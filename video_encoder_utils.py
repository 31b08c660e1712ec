#!/usr/bin/env python3

import pathlib
import shutil

import cv2


def prepare_output_dir(path, clean: bool = True) -> pathlib.Path:
    """创建输出目录，clean 时先清空"""
    path = pathlib.Path(path)
    if clean and path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def extract_frames_from_video(video_path, output_dir, frame_rate: float) -> list:
    """从视频文件中按目标帧率抽帧，写出 frame_XXXX.png，返回有序路径列表"""
    if frame_rate <= 0:
        raise ValueError(f"帧率必须为正数: {frame_rate}")

    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        raise SystemExit("❌ 打不开输入文件")

    src_fps = cap.get(cv2.CAP_PROP_FPS) or 30
    # 目标FPS高于源FPS时使用源FPS
    actual_output_fps = min(frame_rate, src_fps)
    every = max(1, int(round(src_fps / actual_output_fps)))
    print(f"源视频FPS: {src_fps:.2f}, 目标FPS: {frame_rate}, 实际输出FPS: {actual_output_fps:.2f}")

    output_dir = pathlib.Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    idx = 0
    print("正在提取帧...")

    while True:
        ret, frm = cap.read()
        if not ret:
            break
        if idx % every == 0:
            path = output_dir / f"frame_{len(paths) + 1:04d}.png"
            if not cv2.imwrite(str(path), frm):
                cap.release()
                raise SystemExit(f"❌ 写入帧失败: {path}")
            paths.append(path)

            if len(paths) % 30 == 0:
                print(f"  已提取 {len(paths)} 帧")
        idx += 1
    cap.release()

    if not paths:
        raise SystemExit("❌ 没有任何帧被采样")

    print(f"总共提取了 {len(paths)} 帧")
    return paths
