import base64
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from docx import Document as DocxDocument
from pypdf import PdfReader
from pypdf.errors import DependencyError, PdfReadError
import structlog

from saenggibu.core.config import settings
from saenggibu.core.errors import EmptyContent, ExtractionFailed, FileTooLarge, UnsupportedFormat

logger = structlog.get_logger(__name__)

TEXT_FORMATS = frozenset({"pdf", "docx"})
IMAGE_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
}
SUPPORTED_EXTENSIONS = TEXT_FORMATS | frozenset(IMAGE_MIME_TYPES)


@dataclass(frozen=True)
class DecodedDocument:
    ext: str
    text: str = ""
    image_base64: str = ""
    mime_type: str = ""

    @property
    def is_image(self) -> bool:
        return bool(self.image_base64)


def file_extension(file_name: str | None) -> str:
    return Path(file_name or "").suffix.lower().lstrip(".")


def validate_upload(file_name: str | None, size: int, max_bytes: int | None = None) -> str:
    """Reject unsupported or oversized uploads before anything is decoded. Returns the extension."""
    ext = file_extension(file_name)
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormat("PDF, DOCX 또는 이미지(PNG/JPG/WEBP/GIF) 파일만 지원합니다.")
    limit = max_bytes if max_bytes is not None else settings.max_upload_bytes
    if size > limit:
        raise FileTooLarge(f"파일 크기는 {limit // (1024 * 1024)}MB 이하여야 합니다.")
    return ext


def decode_document(
    data: bytes,
    file_name: str | None,
    content_type: str | None = None,
    max_bytes: int | None = None,
) -> DecodedDocument:
    ext = validate_upload(file_name, len(data), max_bytes)
    if ext in IMAGE_MIME_TYPES:
        return _decode_image(data, ext, content_type)

    if ext == "pdf":
        text = extract_text_from_pdf(data)
    else:
        text = extract_text_from_docx(data)
    text = text.strip()
    if not text:
        raise EmptyContent("파일에서 텍스트를 추출할 수 없습니다.")
    logger.info("document_decoded", ext=ext, chars=len(text))
    return DecodedDocument(ext=ext, text=text)


def _decode_image(data: bytes, ext: str, content_type: str | None) -> DecodedDocument:
    if not data:
        raise EmptyContent("빈 이미지 파일입니다.")
    mime_type = content_type if content_type and content_type.startswith("image/") else IMAGE_MIME_TYPES[ext]
    return DecodedDocument(
        ext=ext,
        image_base64=base64.b64encode(data).decode("ascii"),
        mime_type=mime_type,
    )


def extract_text_from_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(BytesIO(data))
        if reader.is_encrypted:
            reader.decrypt("")
        texts = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, DependencyError, ValueError) as error:
        logger.warning("pdf_extraction_failed", error=str(error))
        raise ExtractionFailed(f"텍스트 추출 실패: {error}") from error
    return "\n".join(texts)


def extract_text_from_docx(data: bytes) -> str:
    try:
        document = DocxDocument(BytesIO(data))
    except Exception as error:  # noqa: BLE001 - python-docx raises zipfile/lxml/KeyError variants
        logger.warning("docx_extraction_failed", error=str(error))
        raise ExtractionFailed(f"텍스트 추출 실패: {error}") from error

    lines = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = []
            for cell in row.cells:
                value = cell.text.strip()
                # merged cells repeat the same text
                if value and (not cells or cells[-1] != value):
                    cells.append(value)
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)
