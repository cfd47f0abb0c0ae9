"""
打印作业管理

作业状态以 CUPS 为准，本模块不保存任何作业记录：
    pending -> processing -> printing -> completed
    pending/processing/printing -> held -> pending (release)
    任意非终止状态 -> cancelled
    aborted 只由 CUPS 内部失败产生
修改作业状态的命令（lp/cancel）失败时不会自动重试。
"""
import os
import logging
from typing import List, Optional

from print_gateway import parsers
from print_gateway.config import GatewayConfig
from print_gateway.cups_service import validate_printer_name
from print_gateway.errors import (
    CommandFailed, CommandTimeout, InvalidTransition, NotFoundError,
    SubmissionOutcomeUnknown, ValidationError
)
from print_gateway.executor import CommandExecutor
from print_gateway.models import PrintJob, PrintJobStatus, PrintOptions
from print_gateway.options import build_lp_args

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 500


def validate_job_id(job_id: str) -> str:
    """作业ID必须是 <打印机名>-<数字>"""
    if not isinstance(job_id, str) or not parsers.JOB_ID_PATTERN.fullmatch(job_id):
        raise ValidationError(f"Invalid job id: {job_id!r}")
    return job_id


class JobManager:
    def __init__(self, executor: CommandExecutor, config: GatewayConfig):
        self.executor = executor
        self.config = config

    def submit(self, printer_name: str, document_path: str, options: PrintOptions) -> str:
        """
        提交打印作业

        Args:
            printer_name: 打印机名称
            document_path: 文件路径，提交后由调用方负责删除
            options: 已校验的打印参数

        Returns:
            CUPS 分配的作业ID，例如 Office_Printer-42

        Raises:
            SubmissionOutcomeUnknown: lp 超时，作业是否已入队未知
            CommandFailed: lp 返回非0
            SubmissionError: lp 输出中没有作业ID
        """
        validate_printer_name(printer_name)
        if not document_path or not os.path.isfile(document_path):
            raise NotFoundError("Document not found")

        args = build_lp_args(printer_name, options, document_path)
        logger.info(f"提交打印作业: 打印机={printer_name}, 文件={os.path.basename(document_path)}")

        try:
            result = self.executor.run(self.config.lp_command, args, self.config.submit_timeout)
        except CommandTimeout as e:
            logger.error(f"提交到 {printer_name} 超时，作业状态未知，需要人工确认")
            raise SubmissionOutcomeUnknown(printer_name=printer_name) from e
        except CommandFailed as e:
            logger.error(f"打印作业提交失败: {e}")
            raise

        job_id = parsers.parse_submission(result.stdout)
        logger.info(f"打印作业已提交: 作业ID={job_id}")
        return job_id

    def _list(self, args: List[str]) -> List[PrintJob]:
        result = self.executor.run(self.config.lpstat_command, args, self.config.status_timeout)
        return parsers.parse_job_list(result.stdout)

    def _all_jobs(self) -> List[PrintJob]:
        return self._list(['-W', 'all', '-o'])

    def list_jobs(self, printer_name: Optional[str] = None) -> List[PrintJob]:
        """当前队列中的作业，可按打印机过滤"""
        args = ['-o']
        if printer_name:
            args.append(validate_printer_name(printer_name))
        return self._list(args)

    def list_active(self, printer_name: Optional[str] = None) -> List[PrintJob]:
        if printer_name:
            validate_printer_name(printer_name)
        return [
            job for job in self._all_jobs()
            if not job.is_terminal and (printer_name is None or job.printer_name == printer_name)
        ]

    def list_history(self, limit: int = 50) -> List[PrintJob]:
        """
        已结束的作业，最近的在前

        没有单独的历史存储，保留多久取决于 CUPS 自身的配置。
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1 or limit > MAX_HISTORY_LIMIT:
            raise ValidationError(f"Limit must be between 1 and {MAX_HISTORY_LIMIT}")
        finished = [job for job in self._all_jobs() if job.is_terminal]
        return list(reversed(finished[-limit:]))

    def get_status(self, job_id: str) -> Optional[PrintJob]:
        """查询作业，不存在时返回 None"""
        validate_job_id(job_id)
        for job in self._all_jobs():
            if job.job_id == job_id:
                return job
        return None

    def _require(self, job_id: str) -> PrintJob:
        job = self.get_status(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    def _run_mutation(self, command: str, args: List[str], job_id: str, action: str) -> None:
        try:
            self.executor.run(command, args, self.config.status_timeout)
        except CommandFailed as e:
            stderr = e.stderr.lower()
            if 'does not exist' in stderr or 'not found' in stderr:
                raise NotFoundError(f"Job not found: {job_id}")
            logger.error(f"{action} 作业 {job_id} 失败: {e}")
            raise
        logger.info(f"已{action}作业: {job_id}")

    def cancel(self, job_id: str) -> None:
        validate_job_id(job_id)
        job = self._require(job_id)
        if job.is_terminal:
            raise InvalidTransition(f"Job {job_id} is already {job.status.value}")
        self._run_mutation(self.config.cancel_command, [job_id], job_id, '取消')

    def hold(self, job_id: str) -> None:
        validate_job_id(job_id)
        job = self._require(job_id)
        if job.is_terminal or job.status == PrintJobStatus.HELD:
            raise InvalidTransition(f"Job {job_id} cannot be held while {job.status.value}")
        self._run_mutation(self.config.lp_command, ['-i', job_id, '-H', 'hold'], job_id, '暂停')

    def release(self, job_id: str) -> None:
        validate_job_id(job_id)
        job = self._require(job_id)
        if job.status != PrintJobStatus.HELD:
            raise InvalidTransition(f"Job {job_id} is not held")
        self._run_mutation(self.config.lp_command, ['-i', job_id, '-H', 'resume'], job_id, '恢复')
