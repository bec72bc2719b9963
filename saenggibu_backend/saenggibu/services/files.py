"""Record-level operations on extracted entries: listing, manual edits and deletion.

Entries cut from the same document share its ``storage_path``; the blob is
only removed once no entry refers to it any more.
"""
from datetime import datetime, timedelta

from sqlalchemy import func, or_
from sqlalchemy.orm import Session
import structlog

from saenggibu.core.config import settings
from saenggibu.core.errors import Forbidden, InvalidClassification, NotFound
from saenggibu.core.taxonomy import (
    CATEGORY_MAINS,
    CHANGCHE_SUBS,
    CHANGCHE_TYPES,
    GYOGWA_SUBS,
    GYOGWA_TYPES,
    SEMESTERS,
    STATUS_ANALYZING,
    STATUS_FAILED,
)
from saenggibu.models.file_analysis import FileAnalysis
from saenggibu.models.student import Student
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.models.user import User
from saenggibu.schemas.file import AnalysisUpdateRequest, ClassificationUpdateRequest
from saenggibu.services.compact_format import normalize_classification
from saenggibu.services.students import get_owned_student

logger = structlog.get_logger(__name__)

STALE_ANALYSIS_ERROR = "분석 시간이 초과되었습니다. 다시 시도해주세요."


def get_owned_file(db: Session, user: User, file_id: int) -> UploadedFile:
    record = db.get(UploadedFile, file_id)
    if record is None:
        raise NotFound("파일을 찾을 수 없습니다.")
    if record.student is None or record.student.created_by != user.id:
        raise Forbidden("해당 파일에 대한 권한이 없습니다.")
    return record


def list_files(db: Session, user: User, student_id: int) -> list[UploadedFile]:
    student = get_owned_student(db, user, student_id)
    return (
        db.query(UploadedFile)
        .filter(UploadedFile.student_id == student.id)
        .order_by(UploadedFile.created_at.desc(), UploadedFile.id.desc())
        .all()
    )


def list_analyses(db: Session, user: User, student_id: int) -> list[FileAnalysis]:
    student = get_owned_student(db, user, student_id)
    return (
        db.query(FileAnalysis)
        .filter(FileAnalysis.student_id == student.id)
        .order_by(FileAnalysis.created_at.desc(), FileAnalysis.id.desc())
        .all()
    )


def get_analysis(db: Session, user: User, file_id: int) -> FileAnalysis:
    record = get_owned_file(db, user, file_id)
    if record.analysis is None:
        raise NotFound("분석 결과가 없습니다.")
    return record.analysis


def update_analysis(
    db: Session, user: User, analysis_id: int, payload: AnalysisUpdateRequest
) -> FileAnalysis:
    analysis = db.get(FileAnalysis, analysis_id)
    if analysis is None:
        raise NotFound("분석 결과가 없습니다.")
    get_owned_file(db, user, analysis.file_id)

    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(analysis, field, value)
    analysis.is_edited = True
    analysis.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(analysis)
    return analysis


def _check_classification(merged: dict, provided: dict) -> None:
    """Reject values outside the taxonomy. Only explicitly provided fields are checked."""
    if provided.get("semester") and provided["semester"] not in SEMESTERS:
        raise InvalidClassification(f"학기는 {', '.join(SEMESTERS)} 중 하나여야 합니다.")
    if "category_main" in provided and provided["category_main"] not in CATEGORY_MAINS:
        raise InvalidClassification(f"알 수 없는 대분류입니다: {provided['category_main']}")
    if provided.get("changche_type") and provided["changche_type"] not in CHANGCHE_TYPES:
        raise InvalidClassification(f"알 수 없는 창체 활동 유형입니다: {provided['changche_type']}")
    if provided.get("gyogwa_type") and provided["gyogwa_type"] not in GYOGWA_TYPES:
        raise InvalidClassification(f"알 수 없는 교과 활동 유형입니다: {provided['gyogwa_type']}")

    for sub_field, type_field, vocabulary in (
        ("changche_sub", "changche_type", CHANGCHE_SUBS),
        ("gyogwa_sub", "gyogwa_type", GYOGWA_SUBS),
    ):
        value = provided.get(sub_field)
        if not value:
            continue
        parent = merged.get(type_field)
        if parent not in vocabulary or value not in vocabulary[parent]:
            raise InvalidClassification(f"'{parent}' 유형에 없는 세부 유형입니다: {value}")


def reclassify_file(
    db: Session, user: User, file_id: int, payload: ClassificationUpdateRequest
) -> UploadedFile:
    record = get_owned_file(db, user, file_id)
    provided = payload.model_dump(exclude_unset=True)
    if "category_main" in provided and provided["category_main"] is None:
        del provided["category_main"]

    current = {
        "semester": record.semester,
        "category_main": record.category_main,
        "changche_type": record.changche_type,
        "changche_sub": record.changche_sub,
        "gyogwa_type": record.gyogwa_type,
        "gyogwa_sub": record.gyogwa_sub,
        "gyogwa_subject_name": record.gyogwa_subject_name,
        "bongsa_hours": record.bongsa_hours,
    }
    merged = {**current, **provided}
    _check_classification(merged, provided)

    for field, value in normalize_classification(merged).items():
        setattr(record, field, value)
    record.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(record)
    logger.info("file_reclassified", file_id=record.id, category=record.category_main)
    return record


def release_blob(db: Session, store, storage_path: str) -> bool:
    """Remove the stored document once no record points at it. Returns True if removed."""
    remaining = (
        db.query(func.count(UploadedFile.id))
        .filter(UploadedFile.storage_path == storage_path)
        .scalar()
    )
    if remaining:
        return False
    store.delete(storage_path)
    logger.info("blob_removed", storage_path=storage_path)
    return True


def delete_file(db: Session, user: User, file_id: int, store) -> bool:
    """Delete one record (its analysis cascades). Returns whether the blob went with it."""
    record = get_owned_file(db, user, file_id)
    storage_path = record.storage_path
    db.delete(record)
    db.commit()
    return release_blob(db, store, storage_path)


def delete_batch(db: Session, user: User, storage_path: str, store) -> int:
    """Delete every record cut from one document, then the document itself."""
    records = (
        db.query(UploadedFile)
        .join(Student, UploadedFile.student_id == Student.id)
        .filter(UploadedFile.storage_path == storage_path)
        .all()
    )
    if not records:
        raise NotFound("파일을 찾을 수 없습니다.")
    if any(record.student.created_by != user.id for record in records):
        raise Forbidden("해당 파일에 대한 권한이 없습니다.")

    for record in records:
        db.delete(record)
    db.commit()
    store.delete(storage_path)
    logger.info("batch_deleted", storage_path=storage_path, records=len(records))
    return len(records)


def read_file_blob(db: Session, user: User, file_id: int, store) -> tuple[UploadedFile, bytes]:
    record = get_owned_file(db, user, file_id)
    try:
        data = store.get(record.storage_path)
    except FileNotFoundError as error:
        raise NotFound("저장된 원본 파일이 없습니다.") from error
    return record, data


def sweep_stale_analyses(
    db: Session,
    timeout_seconds: int | None = None,
    now: datetime | None = None,
) -> int:
    """Fail records stuck in 분석중 past the timeout. Returns the number swept."""
    timeout = timeout_seconds if timeout_seconds is not None else settings.analysis_timeout_seconds
    cutoff = (now or datetime.utcnow()) - timedelta(seconds=timeout)
    stale = (
        db.query(UploadedFile)
        .filter(UploadedFile.analysis_status == STATUS_ANALYZING)
        .filter(
            or_(
                UploadedFile.analysis_started_at.is_(None),
                UploadedFile.analysis_started_at < cutoff,
            )
        )
        .all()
    )
    for record in stale:
        record.analysis_status = STATUS_FAILED
        record.analysis_error = STALE_ANALYSIS_ERROR
    db.commit()
    if stale:
        logger.warning("stale_analyses_swept", count=len(stale), timeout_seconds=timeout)
    return len(stale)
