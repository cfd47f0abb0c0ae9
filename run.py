"""
应用启动脚本
"""
import logging

from print_gateway.app import create_app, setup_logging
from print_gateway.config import (
    SERVICE_HOST, SERVICE_PORT, DEBUG_MODE, LOG_LEVEL, LOG_FILE, GatewayConfig
)
from print_gateway.gateway import PrintGateway

logger = logging.getLogger(__name__)


def main():
    setup_logging(LOG_LEVEL, LOG_FILE)

    config = GatewayConfig()
    gateway = PrintGateway(config)
    gateway.start_cleanup()
    app = create_app(config, gateway)

    logger.info(f"启动远程打印服务: http://{SERVICE_HOST}:{SERVICE_PORT}")
    logger.info(f"文件存储目录: {config.storage_root}")
    if not config.secret_key:
        logger.warning("未设置 SECRET_KEY，重启后会话失效，已上传但未打印的文件将无法访问")

    try:
        app.run(host=SERVICE_HOST, port=SERVICE_PORT, debug=DEBUG_MODE, use_reloader=False)
    finally:
        gateway.stop_cleanup()


if __name__ == '__main__':
    main()
