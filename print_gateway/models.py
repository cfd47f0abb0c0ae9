"""
数据模型
"""
import math
import re
from datetime import datetime
from typing import Optional, List
from enum import Enum

from print_gateway.errors import ValidationError


class PrinterStatus(Enum):
    IDLE = "idle"
    PRINTING = "printing"
    STOPPED = "stopped"
    PAUSED = "paused"
    UNKNOWN = "unknown"


class PrintJobStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PRINTING = "printing"
    HELD = "held"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_JOB_STATUSES


TERMINAL_JOB_STATUSES = frozenset({
    PrintJobStatus.COMPLETED,
    PrintJobStatus.CANCELLED,
    PrintJobStatus.ABORTED,
})


class DocumentType(Enum):
    PDF = "pdf"
    IMAGE = "image"
    POSTSCRIPT = "postscript"
    UNKNOWN = "unknown"


class Printer:
    def __init__(
        self,
        name: str,
        status: PrinterStatus = PrinterStatus.UNKNOWN,
        is_default: bool = False,
        location: str = None,
        description: str = None,
        driver: str = None
    ):
        self.name = name
        self.status = status
        self.is_default = is_default
        self.location = location
        self.description = description
        self.driver = driver

    def to_dict(self):
        return {
            'name': self.name,
            'status': self.status.value,
            'default': self.is_default,
            'location': self.location,
            'description': self.description,
            'driver': self.driver
        }


class PrinterDetails(Printer):
    def __init__(
        self,
        name: str,
        status: PrinterStatus = PrinterStatus.UNKNOWN,
        is_default: bool = False,
        location: str = None,
        description: str = None,
        driver: str = None,
        device_uri: str = None,
        accepting_jobs: Optional[bool] = None,
        state_message: str = None
    ):
        super().__init__(name, status, is_default, location, description, driver)
        self.device_uri = device_uri
        self.accepting_jobs = accepting_jobs
        self.state_message = state_message

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'device_uri': self.device_uri,
            'accepting_jobs': self.accepting_jobs,
            'state_message': self.state_message
        })
        return data


DEFAULT_PAPER_SIZES = ['A4', 'Letter', 'Legal', 'A3']
DEFAULT_COLOR_MODES = ['Color', 'Gray']
DEFAULT_DUPLEX_MODES = ['None']
QUALITIES = ['Draft', 'Normal', 'High']


class PrinterCapabilities:
    def __init__(
        self,
        paper_sizes: List[str] = None,
        color_modes: List[str] = None,
        duplex_modes: List[str] = None,
        collate_supported: bool = False
    ):
        # 任何一项为空时使用默认值，保证调用方拿到的能力集不为空
        self.paper_sizes = list(paper_sizes or DEFAULT_PAPER_SIZES)
        self.color_modes = list(color_modes or DEFAULT_COLOR_MODES)
        self.duplex_modes = list(duplex_modes or DEFAULT_DUPLEX_MODES)
        self.qualities = list(QUALITIES)
        self.collate_supported = collate_supported

    @classmethod
    def fallback(cls) -> 'PrinterCapabilities':
        return cls()

    def to_dict(self):
        return {
            'paperSizes': self.paper_sizes,
            'colorModes': self.color_modes,
            'duplexModes': self.duplex_modes,
            'qualities': self.qualities,
            'collateSupported': self.collate_supported
        }


class PrintJob:
    def __init__(
        self,
        job_id: str,
        printer_name: str,
        username: str = "",
        size_bytes: int = 0,
        submitted_at: str = "",
        status: PrintJobStatus = PrintJobStatus.PENDING
    ):
        self.job_id = job_id
        self.printer_name = printer_name
        self.username = username
        self.size_bytes = size_bytes
        # 时间为 lpstat 原样输出的文本，随区域设置变化，不做解析
        self.submitted_at = submitted_at
        self.status = status

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self):
        return {
            'jobId': self.job_id,
            'printer': self.printer_name,
            'username': self.username,
            'size': self.size_bytes,
            'submittedAt': self.submitted_at,
            'status': self.status.value
        }


class SpoolerStatus:
    def __init__(
        self,
        online: bool,
        message: str,
        printers: List[Printer] = None,
        error: str = None
    ):
        self.online = online
        self.message = message
        self.printers = printers or []
        self.error = error

    def to_dict(self):
        data = {
            'online': self.online,
            'message': self.message,
            'printers': [p.to_dict() for p in self.printers],
            'printerCount': len(self.printers)
        }
        if self.error:
            data['error'] = self.error
        return data


class UploadedDocument:
    def __init__(
        self,
        document_id: str,
        storage_path: str,
        original_name: str,
        size_bytes: int,
        detected_type: DocumentType,
        uploaded_at: datetime
    ):
        self.id = document_id
        self.storage_path = storage_path
        self.original_name = original_name
        self.size_bytes = size_bytes
        self.detected_type = detected_type
        self.uploaded_at = uploaded_at

    def to_dict(self):
        return {
            'id': self.id,
            'originalName': self.original_name,
            'size': self.size_bytes,
            'type': self.detected_type.value,
            'uploadedAt': self.uploaded_at.isoformat()
        }


class PreviewContent:
    def __init__(self, data: bytes, mimetype: str, cached: bool = False):
        self.data = data
        self.mimetype = mimetype
        self.cached = cached


PAPER_SIZE_PATTERN = re.compile(r'^[A-Za-z0-9._-]+$')
PAGE_RANGES_PATTERN = re.compile(r'^\d+(-\d+)?(,\d+(-\d+)?)*$')
ORIENTATIONS = ('Portrait', 'Landscape')
DUPLEX_MODES = ('Long-edge', 'Short-edge')
MARGIN_SIDES = ('top', 'bottom', 'left', 'right')


def _to_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if not math.isfinite(number) or number != int(number):
        raise ValidationError(f"{field} must be an integer")
    return int(number)


def _to_bool(value, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', '1', 'yes', 'on'):
        return True
    if isinstance(value, str) and value.lower() in ('false', '0', 'no', 'off', ''):
        return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(f"{field} must be a boolean")


class PrintOptions:
    """
    打印参数

    通过 from_request 构造时完成全部校验：缺失字段取默认值，
    非法字段直接拒绝，不做截断修正。
    """

    def __init__(
        self,
        copies: int = 1,
        color_mode: str = 'Color',
        paper_size: str = 'A4',
        orientation: str = 'Portrait',
        scaling: int = 100,
        quality: str = 'Normal',
        margins: dict = None,
        duplex: Optional[str] = None,
        page_ranges: Optional[str] = None,
        collate: bool = False
    ):
        self.copies = copies
        self.color_mode = color_mode
        self.paper_size = paper_size
        self.orientation = orientation
        self.scaling = scaling
        self.quality = quality
        self.margins = dict(margins or {side: 0 for side in MARGIN_SIDES})
        self.duplex = duplex
        self.page_ranges = page_ranges
        self.collate = collate

    @classmethod
    def from_request(cls, data: dict, defaults: dict = None) -> 'PrintOptions':
        data = data or {}
        defaults = defaults or {}

        def pick(key, fallback):
            value = data.get(key)
            if value is None or value == '':
                return defaults.get(key, fallback)
            return value

        copies = _to_int(pick('copies', 1), 'copies')
        if copies < 1 or copies > 99:
            raise ValidationError("Copies must be between 1 and 99")

        # 只有 Color 一个彩色取值，其他一律按灰度处理
        color_mode = 'Color' if pick('colorMode', 'Color') == 'Color' else 'Gray'

        paper_size = str(pick('paperSize', 'A4'))
        if not PAPER_SIZE_PATTERN.match(paper_size):
            raise ValidationError(f"Invalid paper size: {paper_size}")

        orientation = pick('orientation', 'Portrait')
        if orientation not in ORIENTATIONS:
            raise ValidationError("Orientation must be Portrait or Landscape")

        scaling = _to_int(pick('scaling', 100), 'scaling')
        if scaling < 25 or scaling > 200:
            raise ValidationError("Scaling must be between 25% and 200%")

        quality = pick('quality', 'Normal')
        if quality not in QUALITIES:
            raise ValidationError("Quality must be Draft, Normal or High")

        margins = cls._parse_margins(pick('margins', None))

        duplex = data.get('duplex')
        if duplex in (None, '', 'None', 'none'):
            duplex = None
        elif duplex not in DUPLEX_MODES:
            raise ValidationError("Duplex must be Long-edge, Short-edge or None")

        page_ranges = data.get('pageRanges')
        if page_ranges in (None, ''):
            page_ranges = None
        else:
            page_ranges = str(page_ranges).replace(' ', '')
            if not PAGE_RANGES_PATTERN.match(page_ranges):
                raise ValidationError(f"Invalid page ranges: {page_ranges}")

        collate = _to_bool(data.get('collate', False), 'collate')

        return cls(
            copies=copies,
            color_mode=color_mode,
            paper_size=paper_size,
            orientation=orientation,
            scaling=scaling,
            quality=quality,
            margins=margins,
            duplex=duplex,
            page_ranges=page_ranges,
            collate=collate
        )

    @staticmethod
    def _parse_margins(value) -> dict:
        margins = {side: 0.0 for side in MARGIN_SIDES}
        if value is None:
            return margins
        if not isinstance(value, dict):
            raise ValidationError("Margins must be an object with top/bottom/left/right")
        for side in MARGIN_SIDES:
            raw = value.get(side)
            if raw in (None, ''):
                continue
            try:
                margin = float(raw)
            except (TypeError, ValueError):
                raise ValidationError(f"Margin {side} must be a number")
            if not math.isfinite(margin) or margin < 0:
                raise ValidationError(f"Margin {side} must not be negative")
            margins[side] = margin
        return margins

    def to_dict(self):
        return {
            'copies': self.copies,
            'colorMode': self.color_mode,
            'paperSize': self.paper_size,
            'orientation': self.orientation,
            'scaling': self.scaling,
            'quality': self.quality,
            'margins': self.margins,
            'duplex': self.duplex,
            'pageRanges': self.page_ranges,
            'collate': self.collate
        }
