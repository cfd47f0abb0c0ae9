"""
外部命令执行

所有 CUPS / Ghostscript 调用都经过这里：参数以列表形式传递，从不经过 shell，
每次调用都必须带超时。
"""
import os
import logging
import subprocess
from typing import List, Optional

from print_gateway.errors import CommandFailed, CommandTimeout, CommandUnavailable

logger = logging.getLogger(__name__)


class CommandResult:
    def __init__(self, stdout: str, stderr: str = '', returncode: int = 0):
        self.stdout = stdout or ''
        self.stderr = stderr or ''
        self.returncode = returncode


class CommandExecutor:
    """无状态，可被多个请求线程同时调用"""

    def __init__(self, locale: Optional[str] = 'C'):
        self.locale = locale

    def _environment(self) -> Optional[dict]:
        if not self.locale:
            return None
        env = dict(os.environ)
        env['LC_ALL'] = self.locale
        env['LANG'] = self.locale
        return env

    def run(self, command: str, args: List[str], timeout: float) -> CommandResult:
        """
        执行外部命令

        Args:
            command: 可执行文件名，例如 lpstat
            args: 参数列表，每个元素作为独立参数传递
            timeout: 超时时间（秒），超时后子进程会被终止

        Returns:
            CommandResult

        Raises:
            CommandTimeout: 超时
            CommandFailed: 退出码非0
            CommandUnavailable: 命令无法启动
        """
        if not timeout or timeout <= 0:
            raise ValueError("timeout must be positive")

        argv = [command] + [str(a) for a in args]
        logger.debug(f"执行命令: {argv}")

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                # PPD 选项文本可能是 Latin-1 等非 UTF-8 编码
                encoding='utf-8',
                errors='replace',
                timeout=timeout,
                env=self._environment(),
                check=False
            )
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr.decode(errors='replace') if isinstance(e.stderr, bytes) else (e.stderr or '')
            logger.error(f"命令超时 ({timeout}s): {command}")
            raise CommandTimeout(
                f"{command} timed out after {timeout:g}s",
                command=command,
                stderr=stderr,
                timeout=timeout
            )
        except OSError as e:
            logger.error(f"无法启动命令 {command}: {e}")
            raise CommandUnavailable(
                f"{command} could not be started: {e}",
                command=command
            )

        if result.returncode != 0:
            stderr = result.stderr.strip()
            logger.warning(f"命令 {command} 退出码 {result.returncode}: {stderr}")
            raise CommandFailed(
                f"{command} exited with status {result.returncode}" + (f": {stderr}" if stderr else ''),
                command=command,
                stderr=stderr,
                exit_code=result.returncode
            )

        return CommandResult(result.stdout, result.stderr, result.returncode)
