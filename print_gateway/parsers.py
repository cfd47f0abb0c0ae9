"""
CUPS命令输出解析

纯函数，不做任何I/O。lpstat / lpoptions 的输出是给人看的文本，格式随版本和
区域设置变化，因此这里对无法识别的行一律跳过，只有提交回执缺少作业ID时才报错。
"""
import re
import shlex
import logging
from typing import List, Optional

from print_gateway.errors import SubmissionError
from print_gateway.models import (
    Printer, PrinterDetails, PrinterStatus, PrinterCapabilities,
    PrintJob, PrintJobStatus
)

logger = logging.getLogger(__name__)

PRINTER_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')
JOB_ID_PATTERN = re.compile(r'^([A-Za-z0-9_-]+)-(\d+)$')

_PRINTER_LINE = re.compile(r'^printer\s+(\S+)\s+(.*)$')
_DEFAULT_LINE = re.compile(r'system default destination:\s*(\S+)')
_REQUEST_ID = re.compile(r'request id is (\S+)')
_JOB_STATUS_SUFFIX = re.compile(r'^(.*?)\s+-\s+([A-Za-z][A-Za-z ]*?)\.?\s*$')

_PRINTER_STATES = {
    'idle': PrinterStatus.IDLE,
    'printing': PrinterStatus.PRINTING,
    'processing': PrinterStatus.PRINTING,
    'stopped': PrinterStatus.STOPPED,
    'disabled': PrinterStatus.STOPPED,
    'paused': PrinterStatus.PAUSED,
}

_JOB_STATES = {
    'pending': PrintJobStatus.PENDING,
    'queued': PrintJobStatus.PENDING,
    'processing': PrintJobStatus.PROCESSING,
    'printing': PrintJobStatus.PRINTING,
    'held': PrintJobStatus.HELD,
    'hold': PrintJobStatus.HELD,
    'on hold': PrintJobStatus.HELD,
    'pending held': PrintJobStatus.HELD,
    'completed': PrintJobStatus.COMPLETED,
    'complete': PrintJobStatus.COMPLETED,
    'canceled': PrintJobStatus.CANCELLED,
    'cancelled': PrintJobStatus.CANCELLED,
    'aborted': PrintJobStatus.ABORTED,
}


def _lines(text: str) -> List[str]:
    return [line.rstrip() for line in (text or '').splitlines() if line.strip()]


def _printer_status(rest: str) -> PrinterStatus:
    words = rest.lower().split()
    if not words:
        return PrinterStatus.UNKNOWN
    if words[0] == 'is' and len(words) > 1:
        token = words[1].strip('.,;:')
    elif words[0] == 'now' and len(words) > 1:
        token = words[1].strip('.,;:')
    else:
        token = words[0].strip('.,;:')
    return _PRINTER_STATES.get(token, PrinterStatus.UNKNOWN)


def parse_printer_list(text: str) -> List[Printer]:
    """
    解析 lpstat -p 输出

    例: "printer Office_Printer is idle.  enabled since ..."
    """
    printers = []
    for line in _lines(text):
        match = _PRINTER_LINE.match(line)
        if not match:
            continue
        name, rest = match.groups()
        printers.append(Printer(name=name, status=_printer_status(rest)))
    return printers


def parse_default_printer(text: str) -> Optional[str]:
    """解析 lpstat -d 输出，没有默认打印机时返回 None"""
    match = _DEFAULT_LINE.search(text or '')
    return match.group(1) if match else None


def apply_default(printers: List[Printer], default_name: Optional[str]) -> List[Printer]:
    for printer in printers:
        printer.is_default = default_name is not None and printer.name == default_name
    return printers


def parse_printer_details(text: str, name: str) -> Optional[PrinterDetails]:
    """
    解析 lpstat -l -p <name> 输出

    标题行之后缩进的 "Key: value" 行为属性；紧跟标题行、出现在任何属性之前的
    不含冒号的缩进行是状态消息。更深一级缩进的行（如 "Users allowed:" 下的
    "(all)"）是上一属性的列表项，忽略。找不到该打印机的标题行时返回 None。
    """
    details = None
    base_indent = None
    seen_attribute = False
    for line in _lines(text):
        match = _PRINTER_LINE.match(line)
        if match:
            if details is not None:
                break
            if match.group(1) != name:
                continue
            details = PrinterDetails(name=name, status=_printer_status(match.group(2)))
            continue
        if details is None:
            continue

        stripped = line.strip()
        indent = len(line) - len(line.lstrip())
        if base_indent is None:
            base_indent = indent
        elif indent > base_indent:
            continue

        if ':' in stripped:
            seen_attribute = True
            key, _, value = stripped.partition(':')
            key = key.strip().lower()
            value = value.strip()
            if key == 'description' and value:
                details.description = value
            elif key == 'location' and value:
                details.location = value
            elif key == 'alerts' and value and value != 'none' and not details.state_message:
                details.state_message = value
        elif not seen_attribute and details.state_message is None:
            details.state_message = stripped
    return details


def parse_lpoptions(text: str) -> dict:
    """
    解析 lpoptions -p <name> 输出的 key=value 列表

    值可能带单引号，例: printer-make-and-model='HP LaserJet 400'
    """
    text = (text or '').strip()
    if not text:
        return {}
    try:
        tokens = shlex.split(text)
    except ValueError:
        logger.warning("lpoptions 输出引号不匹配，按空白拆分")
        tokens = text.split()

    options = {}
    for token in tokens:
        key, sep, value = token.partition('=')
        if sep and key:
            options[key] = value
    return options


def details_from_lpoptions(details: PrinterDetails, options: dict) -> PrinterDetails:
    driver = options.get('printer-make-and-model')
    if driver:
        details.driver = driver
    if options.get('device-uri'):
        details.device_uri = options['device-uri']
    if not details.description and options.get('printer-info'):
        details.description = options['printer-info']
    if not details.location and options.get('printer-location'):
        details.location = options['printer-location']
    accepting = options.get('printer-is-accepting-jobs')
    if accepting is not None:
        details.accepting_jobs = accepting.lower() == 'true'
    return details


def _option_values(line: str) -> List[str]:
    _, _, remainder = line.partition(':')
    # 带 * 的是当前选中值，不计入可选列表
    return [token for token in remainder.split() if token and not token.startswith('*')]


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def parse_capabilities(text: str) -> PrinterCapabilities:
    """
    解析 lpoptions -p <name> -l 输出

    例: "PageSize/Media Size: Letter *A4 Legal"

    每行只归入一类，按 Duplex、纸张、颜色的顺序判断。PageSize 行优先于其他
    含 Media 的行，ColorModel 行优先于其他含 Color 的行。
    """
    page_sizes, media, color_models, colors, duplex = [], [], [], [], []
    collate = False

    for line in _lines(text):
        if ':' not in line:
            continue
        label = line.split(':', 1)[0]
        if 'Collate' in label:
            collate = True
            continue
        if 'Duplex' in label:
            duplex.extend(_option_values(line))
        elif 'PageSize' in label:
            page_sizes.extend(_option_values(line))
        elif 'Media' in label:
            media.extend(_option_values(line))
        elif 'ColorModel' in label:
            color_models.extend(_option_values(line))
        elif 'Color' in label:
            colors.extend(_option_values(line))

    paper = _dedupe(page_sizes or media)
    color = _dedupe(color_models or colors)
    if not paper or not color:
        logger.debug("打印机能力输出不完整，使用默认值补齐")

    return PrinterCapabilities(
        paper_sizes=paper,
        color_modes=color,
        duplex_modes=_dedupe(duplex),
        collate_supported=collate
    )


def derive_printer_name(job_id: str) -> Optional[str]:
    """作业ID形如 <打印机名>-<序号>，取最后一个 -数字 之前的部分"""
    match = JOB_ID_PATTERN.match(job_id or '')
    return match.group(1) if match else None


def _job_status(text: Optional[str]) -> PrintJobStatus:
    if text is None:
        return PrintJobStatus.PENDING
    return _JOB_STATES.get(text.strip().lower(), PrintJobStatus.UNKNOWN)


def parse_job_line(line: str) -> Optional[PrintJob]:
    """
    解析单行作业信息

    格式: <jobId> <username> <sizeBytes> <submittedAt>[ - <status>]
    没有状态后缀表示 pending。
    """
    parts = line.strip().split(None, 3)
    if len(parts) < 3:
        return None
    job_id, username, size = parts[:3]
    printer_name = derive_printer_name(job_id)
    if printer_name is None or not size.isdigit():
        return None

    rest = parts[3] if len(parts) > 3 else ''
    status_text = None
    match = _JOB_STATUS_SUFFIX.match(rest)
    if match:
        rest, status_text = match.groups()
    elif rest.startswith('- '):
        status_text = rest[2:]
        rest = ''

    return PrintJob(
        job_id=job_id,
        printer_name=printer_name,
        username=username,
        size_bytes=int(size),
        submitted_at=rest.strip(),
        status=_job_status(status_text)
    )


def parse_job_list(text: str) -> List[PrintJob]:
    jobs = []
    for line in _lines(text):
        job = parse_job_line(line)
        if job is None:
            logger.debug(f"跳过无法识别的作业行: {line!r}")
            continue
        jobs.append(job)
    return jobs


def parse_submission(text: str) -> str:
    """
    从 lp 输出中提取作业ID

    例: "request id is Office_Printer-42 (1 file(s))"

    Raises:
        SubmissionError: 输出中没有可用的作业ID
    """
    match = _REQUEST_ID.search(text or '')
    if not match:
        raise SubmissionError(f"No job id in spooler response: {(text or '').strip()!r}")
    job_id = match.group(1)
    if not JOB_ID_PATTERN.match(job_id):
        raise SubmissionError(f"Unrecognised job id in spooler response: {job_id!r}")
    return job_id


def parse_scheduler_running(text: str) -> bool:
    """lpstat -r: "scheduler is running" / "scheduler is not running" """
    text = (text or '').lower()
    return 'scheduler is running' in text
