"""
文件处理服务

上传的文件保存在 uploads/temp/<id>-<原文件名>，id 由会话前缀和随机 uuid 组成。
文件在提交打印后删除；放弃的上传由 cleanup 模块按时间清理。
"""
import os
import re
import uuid
import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Optional, Union, BinaryIO

from PIL import Image
from werkzeug.utils import secure_filename

from print_gateway.config import GatewayConfig
from print_gateway.errors import (
    ExecutionError, NotFoundError, PreviewGenerationFailed, ValidationError
)
from print_gateway.executor import CommandExecutor
from print_gateway.models import DocumentType, PreviewContent, UploadedDocument

logger = logging.getLogger(__name__)

DOCUMENT_ID_PATTERN = re.compile(r'^[A-Za-z0-9]{1,8}-[0-9a-f]{32}$')
CLAIM_SUFFIX = '.printing'
CHUNK_SIZE = 64 * 1024

EXTENSION_TYPES = {
    'pdf': DocumentType.PDF,
    'jpg': DocumentType.IMAGE,
    'jpeg': DocumentType.IMAGE,
    'png': DocumentType.IMAGE,
    'gif': DocumentType.IMAGE,
    'ps': DocumentType.POSTSCRIPT,
    'eps': DocumentType.POSTSCRIPT,
}

POSTSCRIPT_MIME_TYPES = {'application/postscript', 'application/eps', 'image/x-eps'}


def session_prefix(session_id: str) -> str:
    """会话ID的前8个字母数字字符，作为文件ID前缀"""
    prefix = re.sub(r'[^A-Za-z0-9]', '', session_id or '')[:8]
    return prefix or 'anon'


class FileHandler:
    def __init__(self, config: GatewayConfig, executor: CommandExecutor):
        self.config = config
        self.executor = executor
        self.temp_folder = config.temp_dir
        self.preview_folder = config.previews_dir
        self._ensure_directories()

    def _ensure_directories(self):
        """确保目录存在"""
        Path(self.temp_folder).mkdir(parents=True, exist_ok=True)
        Path(self.preview_folder).mkdir(parents=True, exist_ok=True)

    def allowed_file(self, filename: str) -> bool:
        """检查文件扩展名是否允许"""
        return self.get_file_extension(filename) in self.config.allowed_extensions

    def get_file_extension(self, filename: str) -> str:
        """获取文件扩展名"""
        return filename.rsplit('.', 1)[1].lower() if '.' in filename else ''

    def get_mime_type(self, file_path: str) -> Optional[str]:
        """用 libmagic 检测文件内容类型，libmagic 不可用时返回 None"""
        try:
            import magic
            return magic.Magic(mime=True).from_file(str(file_path))
        except Exception as e:
            logger.warning(f"无法检测文件类型: {e}")
            return None

    def detect_type(self, filename: str, mime_type: Optional[str] = None) -> DocumentType:
        """扩展名优先，其次看内容类型"""
        extension = self.get_file_extension(filename)
        if extension in EXTENSION_TYPES:
            return EXTENSION_TYPES[extension]
        if mime_type == 'application/pdf':
            return DocumentType.PDF
        if mime_type in POSTSCRIPT_MIME_TYPES:
            return DocumentType.POSTSCRIPT
        if mime_type and mime_type.startswith('image/'):
            return DocumentType.IMAGE
        return DocumentType.UNKNOWN

    def _write(self, source: Union[bytes, BinaryIO], target: Path) -> int:
        max_size = self.config.max_content_length
        if isinstance(source, (bytes, bytearray)):
            if len(source) > max_size:
                raise ValidationError(f"File size exceeds maximum allowed size of {max_size // (1024 * 1024)}MB")
            target.write_bytes(source)
            return len(source)

        written = 0
        try:
            with open(target, 'wb') as f:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_size:
                        raise ValidationError(
                            f"File size exceeds maximum allowed size of {max_size // (1024 * 1024)}MB"
                        )
                    f.write(chunk)
        except ValidationError:
            target.unlink(missing_ok=True)
            raise
        return written

    def save_upload(
        self,
        source: Union[bytes, BinaryIO],
        original_name: str,
        session_id: str
    ) -> UploadedDocument:
        """
        保存上传文件

        Args:
            source: 文件内容或可读的文件对象
            original_name: 客户端提供的文件名
            session_id: 上传者的会话ID

        Returns:
            UploadedDocument
        """
        if not original_name:
            raise ValidationError("No file selected")
        if not self.allowed_file(original_name):
            raise ValidationError("Invalid file type. Allowed types: PDF, JPEG, PNG, GIF, PostScript")

        extension = self.get_file_extension(original_name)
        safe_name = secure_filename(original_name)
        if self.get_file_extension(safe_name) != extension:
            safe_name = f"document.{extension}"

        document_id = f"{session_prefix(session_id)}-{uuid.uuid4().hex}"
        file_path = Path(self.temp_folder) / f"{document_id}-{safe_name}"

        size = self._write(source, file_path)
        if size == 0:
            file_path.unlink(missing_ok=True)
            raise ValidationError("Uploaded file is empty")

        detected_type = self.detect_type(original_name, self.get_mime_type(file_path))
        logger.info(f"文件已上传: {file_path.name} ({size} bytes, {detected_type.value})")

        return UploadedDocument(
            document_id=document_id,
            storage_path=str(file_path),
            original_name=original_name,
            size_bytes=size,
            detected_type=detected_type,
            uploaded_at=datetime.now()
        )

    def _check_id(self, document_id: str, session_id: Optional[str]) -> None:
        if not isinstance(document_id, str) or not DOCUMENT_ID_PATTERN.fullmatch(document_id):
            raise NotFoundError("File not found or expired")
        # 不属于当前会话的文件按不存在处理
        if session_id is not None and document_id.split('-', 1)[0] != session_prefix(session_id):
            raise NotFoundError("File not found or expired")

    def _find(self, document_id: str) -> Optional[Path]:
        prefix = f"{document_id}-"
        try:
            names = os.listdir(self.temp_folder)
        except FileNotFoundError:
            return None
        for name in names:
            if name.startswith(prefix) and not name.endswith(CLAIM_SUFFIX):
                return Path(self.temp_folder) / name
        return None

    def resolve(self, document_id: str, session_id: Optional[str] = None) -> str:
        """
        根据文件ID找到存储路径

        每次都重新检查文件是否存在，清理任务可能在两次请求之间删除了文件。
        """
        self._check_id(document_id, session_id)
        path = self._find(document_id)
        if path is None or not path.is_file():
            raise NotFoundError("File not found or expired")
        return str(path)

    def get_document(self, document_id: str, session_id: Optional[str] = None) -> UploadedDocument:
        """
        根据存储文件重建文档信息

        客户端原始文件名只在上传响应中返回；这里的 original_name 是存储时
        经 secure_filename 处理后的文件名（无法处理时为 document.<扩展名>）。
        """
        path = Path(self.resolve(document_id, session_id))
        try:
            stat = path.stat()
        except FileNotFoundError:
            raise NotFoundError("File not found or expired")
        original_name = path.name[len(document_id) + 1:]
        return UploadedDocument(
            document_id=document_id,
            storage_path=str(path),
            original_name=original_name,
            size_bytes=stat.st_size,
            detected_type=self.detect_type(original_name),
            uploaded_at=datetime.fromtimestamp(stat.st_mtime)
        )

    def claim(self, document_id: str, session_id: Optional[str] = None) -> str:
        """
        占用文件用于打印

        通过原子重命名实现，同一个文件只有一个请求能占用成功。

        Returns:
            占用后的文件路径
        """
        path = self.resolve(document_id, session_id)
        claimed = path + CLAIM_SUFFIX
        try:
            os.rename(path, claimed)
        except FileNotFoundError:
            raise NotFoundError("File not found or expired")
        return claimed

    def release_claim(self, claimed_path: str) -> None:
        """提交明确失败时恢复文件，允许用户重试"""
        if not claimed_path.endswith(CLAIM_SUFFIX):
            raise ValueError(f"not a claimed path: {claimed_path}")
        try:
            os.rename(claimed_path, claimed_path[:-len(CLAIM_SUFFIX)])
        except FileNotFoundError:
            logger.warning(f"恢复文件失败，文件已不存在: {claimed_path}")

    def _remove_preview(self, document_id: str) -> None:
        preview_path = self.preview_path(document_id)
        if preview_path.exists():
            preview_path.unlink(missing_ok=True)
            logger.info(f"已删除预览: {preview_path}")

    def consume(self, document_id: str, claimed_path: str) -> None:
        """打印提交后删除文件及其预览，此后该ID永久失效"""
        try:
            os.remove(claimed_path)
            logger.info(f"打印后已删除临时文件: {claimed_path}")
        except FileNotFoundError:
            logger.warning(f"临时文件已不存在: {claimed_path}")
        except OSError as e:
            logger.error(f"删除临时文件失败: {e}")
        self._remove_preview(document_id)

    def delete_document(self, document_id: str, session_id: Optional[str] = None) -> None:
        """删除文件及其预览"""
        path = self.resolve(document_id, session_id)
        try:
            os.remove(path)
        except FileNotFoundError:
            raise NotFoundError("File not found or expired")
        logger.info(f"已删除文件: {path}")
        self._remove_preview(document_id)

    def preview_path(self, document_id: str) -> Path:
        return Path(self.preview_folder) / f"{document_id}.png"

    def get_preview(self, document_id: str, session_id: Optional[str] = None) -> PreviewContent:
        """
        获取文件预览

        PDF 和图片直接返回原文件内容，PostScript 用 Ghostscript 渲染第一页，
        结果缓存在 previews/<id>.png。
        """
        path = self.resolve(document_id, session_id)
        original_name = Path(path).name[len(document_id) + 1:]
        file_type = self.detect_type(original_name)

        if file_type in (DocumentType.PDF, DocumentType.IMAGE):
            mimetype = mimetypes.guess_type(original_name)[0] or 'application/octet-stream'
            return PreviewContent(self._read(path), mimetype)

        if file_type == DocumentType.POSTSCRIPT:
            preview_path = self.preview_path(document_id)
            if preview_path.exists():
                try:
                    return PreviewContent(preview_path.read_bytes(), 'image/png', cached=True)
                except FileNotFoundError:
                    logger.debug(f"预览缓存已被清理，重新生成: {preview_path}")
            self._generate_postscript_preview(path, preview_path)
            return PreviewContent(self._read(preview_path), 'image/png')

        raise PreviewGenerationFailed("Preview not available for this file type")

    def _read(self, path) -> bytes:
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError("File not found or expired")

    def _generate_postscript_preview(self, source_path: str, preview_path: Path) -> None:
        """用 gs 渲染第一页，再按预览尺寸缩放"""
        raw_path = preview_path.with_name(f"{preview_path.stem}.{uuid.uuid4().hex}.raw.png")
        tmp_path = preview_path.with_name(f"{preview_path.stem}.{uuid.uuid4().hex}.tmp.png")
        args = [
            '-dSAFER',
            '-dNOPAUSE',
            '-dBATCH',
            '-sDEVICE=png16m',
            '-r150',
            '-dFirstPage=1',
            '-dLastPage=1',
            f'-sOutputFile={raw_path}',
            source_path
        ]
        try:
            self.executor.run(self.config.gs_command, args, self.config.preview_timeout)
            if not raw_path.exists():
                raise PreviewGenerationFailed("Preview generation failed: rasterizer produced no output")

            with Image.open(raw_path) as img:
                img.thumbnail((self.config.preview_width, self.config.preview_height))
                img.save(tmp_path, 'PNG')
            os.replace(tmp_path, preview_path)
            logger.info(f"预览已生成: {preview_path.name}")
        except ExecutionError as e:
            logger.error(f"Ghostscript 转换失败: {e}")
            raise PreviewGenerationFailed(
                "Preview generation failed. Ghostscript may not be installed."
            ) from e
        except OSError as e:
            logger.error(f"预览图片处理失败: {e}")
            raise PreviewGenerationFailed(f"Preview generation failed: {e}") from e
        finally:
            raw_path.unlink(missing_ok=True)
            tmp_path.unlink(missing_ok=True)
