"""
打印网关

把打印机查询、作业管理和文件管理组合成对外提供的操作，HTTP 层只调用这里。
"""
import logging
from typing import List, Optional, Union, BinaryIO

from print_gateway.cleanup import FileCleaner
from print_gateway.config import GatewayConfig
from print_gateway.cups_service import CupsService, validate_printer_name
from print_gateway.errors import PrintGatewayError, SubmissionError, SubmissionOutcomeUnknown
from print_gateway.executor import CommandExecutor
from print_gateway.file_handler import FileHandler
from print_gateway.job_manager import JobManager
from print_gateway.models import (
    Printer, PrinterCapabilities, PrinterDetails, PrintJob, PrintOptions,
    PreviewContent, SpoolerStatus, UploadedDocument
)

logger = logging.getLogger(__name__)


class PrintGateway:
    def __init__(self, config: GatewayConfig = None, executor: CommandExecutor = None):
        self.config = config or GatewayConfig()
        self.executor = executor or CommandExecutor(locale=self.config.command_locale)
        self.printers = CupsService(self.executor, self.config)
        self.jobs = JobManager(self.executor, self.config)
        self.files = FileHandler(self.config, self.executor)
        self.cleaner = FileCleaner(self.config)

    # 打印机

    def list_printers(self) -> List[Printer]:
        return self.printers.list_printers()

    def get_spooler_status(self) -> SpoolerStatus:
        return self.printers.get_spooler_status()

    def get_capabilities(self, printer_name: str) -> PrinterCapabilities:
        return self.printers.get_capabilities(printer_name)

    def get_printer_details(self, printer_name: str) -> PrinterDetails:
        return self.printers.get_printer_details(printer_name)

    def set_default_printer(self, printer_name: str) -> None:
        self.printers.set_default_printer(printer_name)

    # 作业

    def submit_job(
        self,
        printer_name: str,
        document_id: str,
        options: Union[PrintOptions, dict, None] = None,
        session_id: Optional[str] = None
    ) -> str:
        """
        打印已上传的文件

        提交成功后删除文件；lp 明确失败时恢复文件以便重试；
        超时的提交不恢复也不重试，文件由清理任务回收。
        """
        validate_printer_name(printer_name)
        if not isinstance(options, PrintOptions):
            options = PrintOptions.from_request(options or {}, self.config.default_print_settings)

        claimed_path = self.files.claim(document_id, session_id)
        try:
            job_id = self.jobs.submit(printer_name, claimed_path, options)
        except SubmissionOutcomeUnknown:
            logger.error(f"文件 {document_id} 的提交结果未知，不会自动重新提交")
            raise
        except SubmissionError:
            # lp 已接受文件但没有返回作业ID，不能再次提交
            self.files.consume(document_id, claimed_path)
            raise
        except (PrintGatewayError, OSError):
            self.files.release_claim(claimed_path)
            raise

        self.files.consume(document_id, claimed_path)
        return job_id

    def list_jobs(self, printer_name: Optional[str] = None) -> List[PrintJob]:
        return self.jobs.list_jobs(printer_name)

    def list_active_jobs(self, printer_name: Optional[str] = None) -> List[PrintJob]:
        return self.jobs.list_active(printer_name)

    def get_job(self, job_id: str) -> Optional[PrintJob]:
        return self.jobs.get_status(job_id)

    def cancel_job(self, job_id: str) -> None:
        self.jobs.cancel(job_id)

    def hold_job(self, job_id: str) -> None:
        self.jobs.hold(job_id)

    def release_job(self, job_id: str) -> None:
        self.jobs.release(job_id)

    def list_job_history(self, limit: Optional[int] = None) -> List[PrintJob]:
        return self.jobs.list_history(limit or self.config.default_history_limit)

    # 文件

    def upload_document(
        self,
        source: Union[bytes, BinaryIO],
        original_name: str,
        session_id: str
    ) -> UploadedDocument:
        return self.files.save_upload(source, original_name, session_id)

    def get_document(self, document_id: str, session_id: Optional[str] = None) -> UploadedDocument:
        return self.files.get_document(document_id, session_id)

    def delete_document(self, document_id: str, session_id: Optional[str] = None) -> None:
        self.files.delete_document(document_id, session_id)

    def get_preview(self, document_id: str, session_id: Optional[str] = None) -> PreviewContent:
        return self.files.get_preview(document_id, session_id)

    def start_cleanup(self) -> None:
        self.cleaner.start()

    def stop_cleanup(self) -> None:
        self.cleaner.stop()
