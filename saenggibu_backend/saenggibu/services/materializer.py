from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from saenggibu.core.errors import PersistenceFailed
from saenggibu.core.taxonomy import STATUS_COMPLETE
from saenggibu.models.file_analysis import FileAnalysis
from saenggibu.models.student import Student
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.services.compact_format import ExtractedEntry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StoredDocument:
    file_name: str
    file_type: str
    file_size_bytes: int
    storage_path: str


@dataclass
class MaterializeResult:
    files: list[UploadedFile] = field(default_factory=list)
    analyses: list[FileAnalysis] = field(default_factory=list)
    failures: list[PersistenceFailed] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.files)


def _build_file_record(
    student: Student,
    uploaded_by: int | None,
    document: StoredDocument,
    entry: ExtractedEntry,
) -> UploadedFile:
    return UploadedFile(
        student_id=student.id,
        uploaded_by=uploaded_by,
        file_name=document.file_name,
        file_type=document.file_type,
        file_size_bytes=document.file_size_bytes,
        storage_path=document.storage_path,
        analysis_status=STATUS_COMPLETE,
        **entry.classification(),
    )


def _build_analysis_record(
    record: UploadedFile,
    student: Student,
    entry: ExtractedEntry,
    raw_text: str,
) -> FileAnalysis:
    return FileAnalysis(
        file_id=record.id,
        student_id=student.id,
        is_edited=False,
        raw_text=raw_text,
        **entry.content(),
    )


def materialize_entries(
    db: Session,
    student: Student,
    uploaded_by: int | None,
    document: StoredDocument,
    entries: list[ExtractedEntry],
    raw_text: str,
) -> MaterializeResult:
    """Persist one UploadedFile + FileAnalysis pair per entry, in order.

    Each pair commits as one unit; a failed entry is rolled back whole,
    recorded in ``failures`` and skipped. Only the first fully stored pair keeps
    ``raw_text``.
    """
    result = MaterializeResult()
    raw_text_kept = False

    for index, entry in enumerate(entries):
        try:
            record = _build_file_record(student, uploaded_by, document, entry)
            db.add(record)
            db.flush()
            analysis = _build_analysis_record(record, student, entry, "" if raw_text_kept else raw_text)
            db.add(analysis)
            db.commit()
        except SQLAlchemyError as error:
            db.rollback()
            logger.warning("entry_materialize_failed", index=index, error=str(error))
            result.failures.append(PersistenceFailed(f"활동 항목 저장 실패: {error}", index))
            continue

        db.refresh(record)
        db.refresh(analysis)
        raw_text_kept = raw_text_kept or bool(raw_text)
        result.files.append(record)
        result.analyses.append(analysis)

    logger.info(
        "entries_materialized",
        storage_path=document.storage_path,
        requested=len(entries),
        created=result.count,
        failed=len(result.failures),
    )
    return result
