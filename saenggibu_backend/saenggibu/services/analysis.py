"""Upload and reanalysis flows.

Both run the same extraction: prompt for the student's grade context, one
model call, then the compact-format decoder. Uploads persist every entry the
model returns; reanalysis keeps only the first and rewrites one record in
place.
"""
from datetime import datetime

from sqlalchemy.orm import Session
import structlog

from saenggibu.core.config import settings
from saenggibu.core.errors import NoRawText, PipelineError
from saenggibu.core.storage import build_storage_path
from saenggibu.core.taxonomy import STATUS_ANALYZING, STATUS_COMPLETE, STATUS_FAILED
from saenggibu.models.file_analysis import FileAnalysis
from saenggibu.models.student import Student
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.models.user import User
from saenggibu.services.compact_format import ExtractedEntry, decode_entries
from saenggibu.services.document_decoder import decode_document
from saenggibu.services.extraction_prompt import (
    IMAGE_USER_MESSAGE,
    build_extraction_prompt,
    build_user_message,
)
from saenggibu.services.files import get_owned_file, release_blob
from saenggibu.services.llm_client import ImagePayload, LLMClient
from saenggibu.services.materializer import StoredDocument, materialize_entries
from saenggibu.services.students import get_owned_student

logger = structlog.get_logger(__name__)


def extract_entries(
    client: LLMClient,
    student: Student,
    text: str = "",
    image: ImagePayload | None = None,
) -> list[ExtractedEntry]:
    system_prompt = build_extraction_prompt(student.grade, student.enrollment_year)
    if image is not None:
        response = client.complete(system_prompt, IMAGE_USER_MESSAGE, image)
    else:
        response = client.complete(system_prompt, build_user_message(text))
    return decode_entries(response.content)


def analyze_upload(
    db: Session,
    user: User,
    student_id: int,
    file_name: str,
    content_type: str | None,
    data: bytes,
    client: LLMClient,
    store,
) -> dict:
    student = get_owned_student(db, user, student_id)
    logger.info("upload_received", student_id=student.id, file_name=file_name, size=len(data))

    decoded = decode_document(data, file_name, content_type)
    image = ImagePayload(decoded.image_base64, decoded.mime_type) if decoded.is_image else None
    entries = extract_entries(client, student, text=decoded.text, image=image)

    storage_path = build_storage_path(student.id, decoded.ext)
    store.put(storage_path, data, decoded.mime_type or content_type or "application/octet-stream")
    document = StoredDocument(
        file_name=file_name,
        file_type=decoded.ext,
        file_size_bytes=len(data),
        storage_path=storage_path,
    )
    result = materialize_entries(
        db,
        student,
        user.id,
        document,
        entries,
        raw_text=decoded.text[: settings.raw_text_max_chars],
    )
    if not result.files:
        release_blob(db, store, storage_path)
        raise PipelineError("활동 항목을 저장하지 못했습니다.")

    return {
        "success": True,
        "count": result.count,
        "files": result.files,
        "analyses": result.analyses,
        "failures": [{"index": failure.index, "error": failure.message} for failure in result.failures],
    }


def reanalyze_file(
    db: Session, user: User, file_id: int, client: LLMClient
) -> tuple[UploadedFile, FileAnalysis]:
    """Re-run extraction on the record's own raw text and overwrite it in place.

    On failure the record is left as it was, except for status 실패 and the
    error message.
    """
    record = get_owned_file(db, user, file_id)
    analysis = record.analysis
    raw_text = (analysis.raw_text or "") if analysis is not None else ""
    if not raw_text.strip():
        raise NoRawText("재분석할 원문 텍스트가 없습니다. 파일을 다시 업로드해주세요.")

    record.analysis_status = STATUS_ANALYZING
    record.analysis_error = None
    record.analysis_started_at = datetime.utcnow()
    db.commit()
    logger.info("reanalysis_started", file_id=record.id)

    try:
        entries = extract_entries(client, record.student, text=raw_text)
    except PipelineError as error:
        record.analysis_status = STATUS_FAILED
        record.analysis_error = error.message
        db.commit()
        logger.warning("reanalysis_failed", file_id=record.id, error=error.message)
        raise
    except Exception:
        db.rollback()
        record.analysis_status = STATUS_FAILED
        record.analysis_error = "재분석 중 알 수 없는 오류가 발생했습니다."
        db.commit()
        logger.exception("reanalysis_crashed", file_id=record.id)
        raise

    entry = entries[0]
    for field, value in entry.classification().items():
        setattr(record, field, value)
    for field, value in entry.content().items():
        setattr(analysis, field, value)
    record.analysis_status = STATUS_COMPLETE
    record.analysis_error = None
    analysis.is_edited = False
    db.commit()
    db.refresh(record)
    db.refresh(analysis)
    logger.info("reanalysis_completed", file_id=record.id, entries_returned=len(entries))
    return record, analysis
