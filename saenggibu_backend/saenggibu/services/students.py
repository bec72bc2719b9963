from datetime import datetime
import secrets

from sqlalchemy import or_
from sqlalchemy.orm import Session
import structlog

from saenggibu.core.errors import Forbidden, NotFound
from saenggibu.models.student import Student
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.models.user import User
from saenggibu.schemas.student import StudentCreateRequest, StudentUpdateRequest

logger = structlog.get_logger(__name__)


def get_owned_student(db: Session, user: User, student_id: int) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFound("학생 정보를 찾을 수 없습니다.")
    if student.created_by != user.id:
        raise Forbidden("해당 학생에 대한 권한이 없습니다.")
    return student


def generate_student_login_id(db: Session, school_level: str, grade: str) -> str:
    """``h``/``m`` + two-digit grade + three-digit sequence, e.g. ``h02007``."""
    prefix = ("m" if school_level == "middle" else "h") + str(grade).zfill(2)
    rows = (
        db.query(Student.student_login_id)
        .filter(Student.student_login_id.like(f"{prefix}%"))
        .all()
    )
    last = 0
    for (login_id,) in rows:
        suffix = login_id[len(prefix):]
        if suffix.isdigit():
            last = max(last, int(suffix))
    return f"{prefix}{last + 1:03d}"


def create_student(db: Session, user: User, payload: StudentCreateRequest) -> Student:
    student = Student(
        created_by=user.id,
        student_login_id=generate_student_login_id(db, payload.school_level, payload.grade),
        access_code=f"{secrets.randbelow(10**6):06d}",
        **payload.model_dump(),
    )
    db.add(student)
    db.commit()
    db.refresh(student)
    logger.info("student_created", student_id=student.id, login_id=student.student_login_id)
    return student


def list_students(db: Session, user: User, q: str | None = None) -> list[Student]:
    query = db.query(Student).filter(Student.created_by == user.id)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Student.name.ilike(pattern),
                Student.high_school_name.ilike(pattern),
                Student.student_login_id.ilike(pattern),
            )
        )
    return query.order_by(Student.created_at.desc(), Student.id.desc()).all()


def update_student(db: Session, user: User, student_id: int, payload: StudentUpdateRequest) -> Student:
    student = get_owned_student(db, user, student_id)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(student, field, value)
    student.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(student)
    return student


def set_student_active(db: Session, user: User, student_id: int, is_active: bool) -> Student:
    student = get_owned_student(db, user, student_id)
    student.is_active = is_active
    db.commit()
    db.refresh(student)
    return student


def delete_student(db: Session, user: User, student_id: int, store) -> int:
    """Delete the student with all records; returns the number of blobs removed."""
    student = get_owned_student(db, user, student_id)
    paths = {
        path
        for (path,) in db.query(UploadedFile.storage_path)
        .filter(UploadedFile.student_id == student.id)
        .distinct()
    }
    db.delete(student)
    db.commit()

    for path in paths:
        store.delete(path)
    logger.info("student_deleted", student_id=student_id, blobs_removed=len(paths))
    return len(paths)
