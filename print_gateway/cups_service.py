"""
CUPS服务封装

只通过命令行工具访问 CUPS，每次查询都重新执行命令，不缓存打印机信息。
"""
import logging
from typing import List

from print_gateway import parsers
from print_gateway.config import GatewayConfig
from print_gateway.errors import ExecutionError, CommandFailed, NotFoundError, ValidationError
from print_gateway.executor import CommandExecutor
from print_gateway.models import Printer, PrinterDetails, PrinterCapabilities, SpoolerStatus

logger = logging.getLogger(__name__)


def validate_printer_name(printer_name: str) -> str:
    """只允许字母、数字、- 和 _，校验失败时不会执行任何命令"""
    if not isinstance(printer_name, str) or not parsers.PRINTER_NAME_PATTERN.fullmatch(printer_name):
        raise ValidationError(f"Invalid printer name: {printer_name!r}")
    return printer_name


class CupsService:
    def __init__(self, executor: CommandExecutor, config: GatewayConfig):
        self.executor = executor
        self.config = config

    def _lpstat(self, args: List[str], timeout: float = None) -> str:
        result = self.executor.run(
            self.config.lpstat_command,
            args,
            timeout or self.config.status_timeout
        )
        return result.stdout

    def get_default_printer_name(self):
        """获取默认打印机名，未设置或查询失败时返回 None"""
        try:
            return parsers.parse_default_printer(self._lpstat(['-d']))
        except ExecutionError as e:
            logger.debug(f"查询默认打印机失败，视为未设置: {e}")
            return None

    def list_printers(self) -> List[Printer]:
        """获取所有打印机"""
        try:
            output = self._lpstat(['-p'])
        except ExecutionError as e:
            logger.error(f"获取打印机列表失败: {e}")
            raise

        printers = parsers.parse_printer_list(output)
        parsers.apply_default(printers, self.get_default_printer_name())
        logger.info(f"找到 {len(printers)} 个打印机")
        return printers

    def get_printer_details(self, printer_name: str) -> PrinterDetails:
        """获取指定打印机的详细信息"""
        validate_printer_name(printer_name)

        try:
            output = self._lpstat(['-l', '-p', printer_name])
        except CommandFailed as e:
            # lpstat 对不存在的打印机返回非0: "Invalid destination name in list"
            if 'invalid destination' in e.stderr.lower() or 'unknown' in e.stderr.lower():
                raise NotFoundError(f"Printer not found: {printer_name}")
            raise

        details = parsers.parse_printer_details(output, printer_name)
        if details is None:
            raise NotFoundError(f"Printer not found: {printer_name}")

        try:
            result = self.executor.run(
                self.config.lpoptions_command,
                ['-p', printer_name],
                self.config.status_timeout
            )
            parsers.details_from_lpoptions(details, parsers.parse_lpoptions(result.stdout))
        except ExecutionError as e:
            logger.warning(f"获取打印机 {printer_name} 驱动信息失败: {e}")

        details.is_default = self.get_default_printer_name() == printer_name
        return details

    def get_capabilities(self, printer_name: str) -> PrinterCapabilities:
        """获取打印机支持的纸张、颜色、双面等选项，查询失败时返回默认能力集"""
        validate_printer_name(printer_name)

        try:
            result = self.executor.run(
                self.config.lpoptions_command,
                ['-p', printer_name, '-l'],
                self.config.status_timeout
            )
        except ExecutionError as e:
            logger.warning(f"获取打印机 {printer_name} 选项失败，使用默认值: {e}")
            return PrinterCapabilities.fallback()

        return parsers.parse_capabilities(result.stdout)

    def is_scheduler_running(self) -> bool:
        try:
            output = self._lpstat(['-r'], timeout=self.config.probe_timeout)
        except ExecutionError as e:
            logger.warning(f"CUPS 状态探测失败: {e}")
            return False
        return parsers.parse_scheduler_running(output)

    def get_spooler_status(self) -> SpoolerStatus:
        """
        获取 CUPS 服务状态

        先做一次轻量探测，探测失败时直接返回离线，不再执行其他查询。
        """
        if not self.is_scheduler_running():
            return SpoolerStatus(online=False, message='CUPS service is not available')

        try:
            printers = self.list_printers()
        except ExecutionError as e:
            return SpoolerStatus(online=True, message='CUPS is running', error=str(e))

        return SpoolerStatus(online=True, message='CUPS is running', printers=printers)

    def set_default_printer(self, printer_name: str) -> None:
        """设置系统默认打印机"""
        validate_printer_name(printer_name)
        try:
            self.executor.run(
                self.config.lpadmin_command,
                ['-d', printer_name],
                self.config.status_timeout
            )
        except ExecutionError as e:
            logger.error(f"设置默认打印机 {printer_name} 失败: {e}")
            raise
        logger.info(f"默认打印机已设置为: {printer_name}")
