"""
过期文件清理

uploads/temp 下的文件超过 TEMP_MAX_AGE_SECONDS 删除；previews 及 uploads 下
其他目录的文件超过 UPLOAD_CLEANUP_HOURS 删除。清理在后台线程中定期执行，
与请求处理互不依赖。
"""
import os
import time
import logging
import threading
from pathlib import Path
from typing import Optional

from print_gateway.config import GatewayConfig

logger = logging.getLogger(__name__)


class FileCleaner:
    def __init__(self, config: GatewayConfig):
        self.config = config
        self._stop_event = threading.Event()
        self._thread = None

    def _cleanup_directory(self, directory: Path, max_age: float, now: float) -> int:
        removed = 0
        if not directory.is_dir():
            return removed

        with os.scandir(directory) as it:
            entries = list(it)
        for entry in entries:
            path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False):
                removed += self._cleanup_directory(path, max_age, now)
                try:
                    if not any(path.iterdir()):
                        path.rmdir()
                except OSError:
                    # 目录可能已被其他清理删除
                    pass
                continue

            try:
                age = now - entry.stat(follow_symlinks=False).st_mtime
                if age > max_age:
                    path.unlink()
                    removed += 1
                    logger.info(f"已清理过期文件: {path}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"清理文件失败 {path}: {e}")
        return removed

    def sweep(self, now: Optional[float] = None) -> int:
        """执行一次清理，返回删除的文件数"""
        now = time.time() if now is None else now
        long_max_age = self.config.upload_cleanup_hours * 60 * 60
        uploads_dir = Path(self.config.uploads_dir)

        removed = self._cleanup_directory(Path(self.config.temp_dir), self.config.temp_max_age_seconds, now)
        removed += self._cleanup_directory(Path(self.config.previews_dir), long_max_age, now)

        if uploads_dir.is_dir():
            with os.scandir(uploads_dir) as it:
                entries = list(it)
            for entry in entries:
                if entry.is_dir(follow_symlinks=False) and entry.name != 'temp':
                    removed += self._cleanup_directory(Path(entry.path), long_max_age, now)

        if removed:
            logger.info(f"清理完成: 删除 {removed} 个文件")
        return removed

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.sweep()
            except Exception:
                logger.exception("文件清理出错")
            self._stop_event.wait(self.config.cleanup_interval_seconds)

    def start(self) -> None:
        """启动后台清理线程（启动时立即清理一次）"""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="print-gateway-cleanup", daemon=True)
        self._thread.start()
        logger.info(f"文件清理线程已启动，间隔 {self.config.cleanup_interval_seconds} 秒")

    def stop(self, timeout: float = 5) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
