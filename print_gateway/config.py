"""
配置文件
"""
import os
from pathlib import Path

# 服务配置
SERVICE_HOST = os.getenv('SERVICE_HOST', '0.0.0.0')
SERVICE_PORT = int(os.getenv('SERVICE_PORT', 5000))
DEBUG_MODE = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

# CUPS命令
LP_COMMAND = os.getenv('LP_COMMAND', 'lp')
LPSTAT_COMMAND = os.getenv('LPSTAT_COMMAND', 'lpstat')
LPOPTIONS_COMMAND = os.getenv('LPOPTIONS_COMMAND', 'lpoptions')
CANCEL_COMMAND = os.getenv('CANCEL_COMMAND', 'cancel')
LPADMIN_COMMAND = os.getenv('LPADMIN_COMMAND', 'lpadmin')
GS_COMMAND = os.getenv('GS_COMMAND', 'gs')
COMMAND_LOCALE = os.getenv('COMMAND_LOCALE', 'C')

# 命令超时（秒）
STATUS_TIMEOUT = float(os.getenv('STATUS_TIMEOUT', 5))
PROBE_TIMEOUT = float(os.getenv('PROBE_TIMEOUT', 3))
SUBMIT_TIMEOUT = float(os.getenv('SUBMIT_TIMEOUT', 30))
PREVIEW_TIMEOUT = float(os.getenv('PREVIEW_TIMEOUT', 10))

# 文件配置
STORAGE_ROOT = os.getenv('STORAGE_ROOT', '/app/data')
MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', 50 * 1024 * 1024))  # 50MB
ALLOWED_EXTENSIONS = {'pdf', 'jpg', 'jpeg', 'png', 'gif', 'ps', 'eps'}

# 预览配置
PREVIEW_WIDTH = int(os.getenv('PREVIEW_WIDTH', 800))
PREVIEW_HEIGHT = int(os.getenv('PREVIEW_HEIGHT', 1000))

# 清理配置
TEMP_MAX_AGE_SECONDS = int(os.getenv('TEMP_MAX_AGE_SECONDS', 60 * 60))
UPLOAD_CLEANUP_HOURS = float(os.getenv('UPLOAD_CLEANUP_HOURS', 24))
CLEANUP_INTERVAL_SECONDS = int(os.getenv('CLEANUP_INTERVAL_SECONDS', 15 * 60))

# 默认打印参数
DEFAULT_PRINT_SETTINGS = {
    'copies': int(os.getenv('DEFAULT_COPIES', 1)),
    'colorMode': os.getenv('DEFAULT_COLOR_MODE', 'Color'),
    'paperSize': os.getenv('DEFAULT_PAPER_SIZE', 'A4'),
    'orientation': os.getenv('DEFAULT_ORIENTATION', 'Portrait'),
    'scaling': int(os.getenv('DEFAULT_SCALING', 100)),
    'quality': os.getenv('DEFAULT_QUALITY', 'Normal'),
    'margins': {'top': 0, 'bottom': 0, 'left': 0, 'right': 0},
}
DEFAULT_HISTORY_LIMIT = int(os.getenv('DEFAULT_HISTORY_LIMIT', 50))

# 日志配置
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FILE = os.getenv('LOG_FILE', '')

# 安全配置
SECRET_KEY = os.getenv('SECRET_KEY', '')
API_KEY = os.getenv('API_KEY', '')
REQUIRE_AUTH = os.getenv('REQUIRE_AUTH', 'false').lower() == 'true'
ADMIN_API_KEY = os.getenv('ADMIN_API_KEY', '')


class GatewayConfig:
    """
    运行时配置

    各组件在构造时接收同一个配置对象，不再直接读取模块级常量。
    """

    def __init__(
        self,
        storage_root: str = STORAGE_ROOT,
        max_content_length: int = MAX_CONTENT_LENGTH,
        allowed_extensions: set = None,
        preview_width: int = PREVIEW_WIDTH,
        preview_height: int = PREVIEW_HEIGHT,
        status_timeout: float = STATUS_TIMEOUT,
        probe_timeout: float = PROBE_TIMEOUT,
        submit_timeout: float = SUBMIT_TIMEOUT,
        preview_timeout: float = PREVIEW_TIMEOUT,
        temp_max_age_seconds: int = TEMP_MAX_AGE_SECONDS,
        upload_cleanup_hours: float = UPLOAD_CLEANUP_HOURS,
        cleanup_interval_seconds: int = CLEANUP_INTERVAL_SECONDS,
        command_locale: str = COMMAND_LOCALE,
        lp_command: str = LP_COMMAND,
        lpstat_command: str = LPSTAT_COMMAND,
        lpoptions_command: str = LPOPTIONS_COMMAND,
        cancel_command: str = CANCEL_COMMAND,
        lpadmin_command: str = LPADMIN_COMMAND,
        gs_command: str = GS_COMMAND,
        default_print_settings: dict = None,
        default_history_limit: int = DEFAULT_HISTORY_LIMIT,
        secret_key: str = SECRET_KEY,
        api_key: str = API_KEY,
        require_auth: bool = REQUIRE_AUTH,
        admin_api_key: str = ADMIN_API_KEY
    ):
        self.storage_root = storage_root
        self.max_content_length = max_content_length
        self.allowed_extensions = set(allowed_extensions or ALLOWED_EXTENSIONS)
        self.preview_width = preview_width
        self.preview_height = preview_height
        self.status_timeout = status_timeout
        self.probe_timeout = probe_timeout
        self.submit_timeout = submit_timeout
        self.preview_timeout = preview_timeout
        self.temp_max_age_seconds = temp_max_age_seconds
        self.upload_cleanup_hours = upload_cleanup_hours
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.command_locale = command_locale
        self.lp_command = lp_command
        self.lpstat_command = lpstat_command
        self.lpoptions_command = lpoptions_command
        self.cancel_command = cancel_command
        self.lpadmin_command = lpadmin_command
        self.gs_command = gs_command
        self.default_print_settings = dict(DEFAULT_PRINT_SETTINGS)
        if default_print_settings:
            self.default_print_settings.update(default_print_settings)
        self.default_history_limit = default_history_limit
        self.secret_key = secret_key
        self.api_key = api_key
        self.require_auth = require_auth
        self.admin_api_key = admin_api_key

    @property
    def uploads_dir(self) -> Path:
        return Path(self.storage_root) / 'uploads'

    @property
    def temp_dir(self) -> Path:
        return self.uploads_dir / 'temp'

    @property
    def previews_dir(self) -> Path:
        return Path(self.storage_root) / 'previews'
