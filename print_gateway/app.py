"""
Flask主应用 - 远程打印服务
"""
import io
import os
import uuid
import logging
from datetime import datetime
from pathlib import Path

from flask import Flask, request, jsonify, send_file, session
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from print_gateway.config import GatewayConfig
from print_gateway.errors import PrintGatewayError, ValidationError
from print_gateway.gateway import PrintGateway

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = 'INFO', log_file: str = ''):
    """配置日志：控制台输出，设置了 LOG_FILE 时同时写文件"""
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )


def create_app(config: GatewayConfig = None, gateway: PrintGateway = None) -> Flask:
    """创建应用"""
    config = config or GatewayConfig()
    gateway = gateway or PrintGateway(config)

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.max_content_length
    app.config['SECRET_KEY'] = config.secret_key or os.urandom(32).hex()
    app.extensions['print_gateway'] = gateway
    CORS(app)

    def _session_id() -> str:
        """当前会话ID，上传文件的归属以此为准"""
        if 'sid' not in session:
            session['sid'] = uuid.uuid4().hex
        return session['sid']

    def _is_admin() -> bool:
        return bool(config.admin_api_key) and request.headers.get('X-Admin-Key') == config.admin_api_key

    def _error(message: str, status: int):
        return jsonify({'success': False, 'error': message}), status

    @app.before_request
    def check_api_key():
        if not config.require_auth or not request.path.startswith('/api/'):
            return None
        if request.path == '/api/health':
            return None
        if not config.api_key or request.headers.get('X-API-Key') != config.api_key:
            return _error('Unauthorized', 401)
        return None

    @app.errorhandler(PrintGatewayError)
    def handle_gateway_error(e: PrintGatewayError):
        if e.status_code >= 500:
            logger.error(f"{request.method} {request.path} 失败: {e}")
        else:
            logger.info(f"{request.method} {request.path} 被拒绝: {e}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return _error(e.description or e.name, e.code)
        logger.exception(f"{request.method} {request.path} 出现未处理的异常")
        return _error(str(e) or 'Internal server error', 500)

    @app.route('/api/health')
    def health():
        """健康检查"""
        return jsonify({
            'status': 'ok',
            'service': 'Print Gateway',
            'timestamp': datetime.now().isoformat()
        })

    @app.route('/api/printers', methods=['GET'])
    def list_printers():
        """获取打印机列表"""
        printers = gateway.list_printers()
        return jsonify({'success': True, 'printers': [p.to_dict() for p in printers]})

    @app.route('/api/printers/status', methods=['GET'])
    def spooler_status():
        """获取 CUPS 状态"""
        status = gateway.get_spooler_status()
        return jsonify({'success': True, **status.to_dict()})

    @app.route('/api/printers/<printer_name>/options', methods=['GET'])
    def printer_options(printer_name):
        """获取打印机支持的选项"""
        capabilities = gateway.get_capabilities(printer_name)
        return jsonify({'success': True, 'options': capabilities.to_dict()})

    @app.route('/api/printers/<printer_name>/details', methods=['GET'])
    def printer_details(printer_name):
        """获取打印机详细信息"""
        details = gateway.get_printer_details(printer_name)
        return jsonify({'success': True, 'printer': details.to_dict()})

    @app.route('/api/printers/<printer_name>/default', methods=['PUT'])
    def set_default_printer(printer_name):
        """设置默认打印机（需要管理员权限）"""
        if not _is_admin():
            return _error('Admin access required', 403)
        gateway.set_default_printer(printer_name)
        return jsonify({'success': True, 'printer': printer_name})

    @app.route('/api/upload', methods=['POST'])
    def upload_file():
        """上传文件，打印后自动删除"""
        if 'file' not in request.files:
            return _error('No file uploaded', 400)
        file = request.files['file']
        if not file.filename:
            return _error('No file selected', 400)

        document = gateway.upload_document(file.stream, file.filename, _session_id())
        return jsonify({'success': True, 'file': document.to_dict()})

    @app.route('/api/upload/<document_id>', methods=['GET'])
    def get_file(document_id):
        """获取已上传文件的信息"""
        document = gateway.get_document(document_id, _session_id())
        return jsonify({'success': True, 'file': document.to_dict()})

    @app.route('/api/upload/<document_id>', methods=['DELETE'])
    def delete_file(document_id):
        """删除已上传的文件"""
        gateway.delete_document(document_id, _session_id())
        return jsonify({'success': True})

    @app.route('/api/preview/<document_id>', methods=['GET'])
    def get_preview(document_id):
        """获取文件预览"""
        preview = gateway.get_preview(document_id, _session_id())
        return send_file(io.BytesIO(preview.data), mimetype=preview.mimetype)

    @app.route('/api/print', methods=['POST'])
    def print_file():
        """打印已上传的文件"""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')

        document_id = data.get('fileId')
        printer_name = data.get('printerName')
        if not document_id or not printer_name:
            return _error('File ID and printer name are required', 400)

        job_id = gateway.submit_job(printer_name, document_id, data, _session_id())
        return jsonify({'success': True, 'jobId': job_id})

    @app.route('/api/jobs', methods=['GET'])
    def list_jobs():
        """获取打印队列，可按打印机过滤"""
        jobs = gateway.list_jobs(request.args.get('printer') or None)
        return jsonify({'success': True, 'jobs': [job.to_dict() for job in jobs]})

    @app.route('/api/jobs/active', methods=['GET'])
    def list_active_jobs():
        """获取未结束的作业"""
        jobs = gateway.list_active_jobs(request.args.get('printer') or None)
        return jsonify({'success': True, 'jobs': [job.to_dict() for job in jobs]})

    @app.route('/api/jobs/history', methods=['GET'])
    def job_history():
        """获取已结束的作业"""
        limit = request.args.get('limit', type=int)
        jobs = gateway.list_job_history(limit)
        return jsonify({'success': True, 'jobs': [job.to_dict() for job in jobs]})

    @app.route('/api/jobs/<job_id>', methods=['GET'])
    def get_job(job_id):
        """获取作业状态"""
        job = gateway.get_job(job_id)
        if job is None:
            return _error('Job not found', 404)
        return jsonify({'success': True, 'job': job.to_dict()})

    @app.route('/api/jobs/<job_id>', methods=['DELETE'])
    def cancel_job(job_id):
        """取消打印作业"""
        gateway.cancel_job(job_id)
        return jsonify({'success': True, 'jobId': job_id})

    @app.route('/api/jobs/<job_id>/hold', methods=['POST'])
    def hold_job(job_id):
        """暂停打印作业"""
        gateway.hold_job(job_id)
        return jsonify({'success': True, 'jobId': job_id})

    @app.route('/api/jobs/<job_id>/release', methods=['POST'])
    def release_job(job_id):
        """恢复打印作业"""
        gateway.release_job(job_id)
        return jsonify({'success': True, 'jobId': job_id})

    return app
