#!/usr/bin/env python3
"""
worker_pool.py - 单张图像并行处理
固定大小的进程池，每个任务独立 解码 → 分割 → 合并优化，失败只影响该任务

工作进程崩溃会让整个进程池失效（BrokenProcessPool），池中所有未完成任务一起失败。
此时换上新的进程池，受牵连的任务逐个放进单进程的隔离池重跑：
隔离池里再次崩溃的任务就是肇事者，只有它以 WorkerError 失败。
"""

import os
import threading
from collections import deque
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool

from const_def import SORT_BY_AREA, DEFAULT_LOCAL_SEARCH_MAX_ITER
from image_processor import process_and_group_image


class WorkerError(Exception):
    """并行任务失败（包括工作进程崩溃）"""


def process_image_job(args_tuple):
    """处理单张图像 - 用于多进程"""
    job_id, image_path, resize_factor, sort_by, max_iterations = args_tuple

    try:
        blocks = process_and_group_image(image_path, resize_factor, sort_by,
                                         max_iterations=max_iterations)
        return {
            'id': job_id,
            'blocks': blocks,
            'success': True
        }

    except Exception as e:
        return {
            'id': job_id,
            'error': f"{type(e).__name__}: {e}",
            'success': False
        }


class _Job:
    __slots__ = ('args', 'outer', 'isolated')

    def __init__(self, args, outer):
        self.args = args
        self.outer = outer
        self.isolated = False


class ImageWorkerPool:
    """图像处理池：FIFO任务队列，空闲进程逐个领取任务

    worker 为在工作进程中执行的函数（需可 pickle），默认 process_image_job。
    """

    def __init__(self, max_workers: int = None, use_processes: bool = True,
                 worker=process_image_job):
        if max_workers is None:
            max_workers = os.cpu_count() or 1
        if max_workers < 1:
            raise ValueError(f"进程数必须 >= 1: {max_workers}")
        self.max_workers = max_workers
        self._executor_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor
        self._worker = worker
        self._executor = self._executor_cls(max_workers=max_workers)
        self._lock = threading.Lock()
        self._next_id = 0
        self._in_flight = 0
        self._closed = False

        # 崩溃后待隔离重跑的任务，同一时间只跑一个
        self._isolation_queue = deque()
        self._isolation_executor = None
        self._isolation_busy = False

    def process_image(self, image_path, resize_factor: float = 1.0,
                      sort_by: str = SORT_BY_AREA,
                      max_iterations: int = DEFAULT_LOCAL_SEARCH_MAX_ITER) -> Future:
        """提交任务，返回的 Future 结果为区块列表，失败时抛出 WorkerError"""
        with self._lock:
            if self._closed:
                raise RuntimeError("进程池已关闭")
            job_id = self._next_id
            self._next_id += 1
            self._in_flight += 1

        job = _Job((job_id, str(image_path), resize_factor, sort_by, max_iterations), Future())
        try:
            self._submit(job)
        except RuntimeError:
            with self._lock:
                self._in_flight -= 1
            raise
        return job.outer

    def process_images(self, image_paths, resize_factor: float = 1.0,
                       sort_by: str = SORT_BY_AREA,
                       max_iterations: int = DEFAULT_LOCAL_SEARCH_MAX_ITER) -> list:
        return [self.process_image(path, resize_factor, sort_by, max_iterations)
                for path in image_paths]

    def _submit(self, job: _Job):
        executor = self._executor
        try:
            inner = executor.submit(self._worker, job.args)
        except BrokenProcessPool:
            # 崩溃的进程池还没来得及被替换
            self._replace_executor(executor)
            executor = self._executor
            inner = executor.submit(self._worker, job.args)
        inner.add_done_callback(lambda f: self._deliver(f, job, executor))

    def _replace_executor(self, broken):
        with self._lock:
            if self._executor is not broken or self._closed:
                return
            self._executor = self._executor_cls(max_workers=self.max_workers)
        print(f"⚠️ 工作进程崩溃，已重建进程池（{self.max_workers} 个进程）")
        broken.shutdown(wait=False)

    def _run_next_isolated(self):
        with self._lock:
            if self._closed or self._isolation_busy or not self._isolation_queue:
                return
            job = self._isolation_queue.popleft()
            job.isolated = True
            self._isolation_busy = True
            if self._isolation_executor is None:
                self._isolation_executor = self._executor_cls(max_workers=1)
            executor = self._isolation_executor

        inner = executor.submit(self._worker, job.args)
        inner.add_done_callback(lambda f: self._deliver(f, job, executor))

    def _deliver(self, inner: Future, job: _Job, executor):
        if inner.cancelled():
            self._finish(job)
            job.outer.cancel()
            return

        error = inner.exception()
        if isinstance(error, BrokenProcessPool):
            if job.isolated:
                # 单独运行仍然崩溃
                with self._lock:
                    if self._isolation_executor is executor:
                        self._isolation_executor = None
                executor.shutdown(wait=False)
                self._finish(job)
                job.outer.set_exception(
                    WorkerError(f"任务 {job.args[0]} 导致工作进程崩溃: {job.args[1]}"))
                return

            self._replace_executor(executor)
            with self._lock:
                closed = self._closed
                if not closed:
                    self._isolation_queue.append(job)
            if closed:
                self._finish(job)
                job.outer.cancel()
            else:
                self._run_next_isolated()
            return

        self._finish(job)
        if error is not None:
            job.outer.set_exception(WorkerError(f"工作进程异常: {type(error).__name__}: {error}"))
            return

        result = inner.result()
        if result['success']:
            job.outer.set_result(result['blocks'])
        else:
            job.outer.set_exception(WorkerError(f"任务 {result['id']} 失败: {result['error']}"))

    def _finish(self, job: _Job):
        with self._lock:
            self._in_flight -= 1
            if job.isolated:
                self._isolation_busy = False
        if job.isolated:
            self._run_next_isolated()

    def get_pool_size(self) -> int:
        return self.max_workers

    def get_active_workers(self) -> int:
        with self._lock:
            return min(self._in_flight, self.max_workers)

    def terminate(self):
        """取消排队中的任务并关闭进程池"""
        with self._lock:
            self._closed = True
            pending = list(self._isolation_queue)
            self._isolation_queue.clear()
            self._in_flight -= len(pending)
            isolation_executor = self._isolation_executor

        for job in pending:
            job.outer.cancel()
        self._executor.shutdown(wait=True, cancel_futures=True)
        if isolation_executor is not None:
            isolation_executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.terminate()
        return False
