from datetime import date, datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from saenggibu.models.career import CareerChangeHistory, CareerGoals
from saenggibu.models.user import User
from saenggibu.schemas.career import (
    CareerGoalsResponse,
    CareerGoalsUpdateRequest,
    CareerHistoryCreateRequest,
)
from saenggibu.services.students import get_owned_student

RATIO_FIELDS = (
    "admission_hakjong_ratio",
    "admission_gyogwa_ratio",
    "admission_nonsul_ratio",
    "admission_jeongsi_ratio",
)


def get_career_goals(db: Session, user: User, student_id: int) -> CareerGoalsResponse:
    student = get_owned_student(db, user, student_id)
    if student.career_goals is None:
        return CareerGoalsResponse(student_id=student.id)
    return CareerGoalsResponse.model_validate(student.career_goals)


def upsert_career_goals(
    db: Session, user: User, student_id: int, payload: CareerGoalsUpdateRequest
) -> CareerGoalsResponse:
    student = get_owned_student(db, user, student_id)
    goals = student.career_goals
    if goals is None:
        goals = CareerGoals(student_id=student.id, field_keywords=[])
        db.add(goals)

    updates = payload.model_dump(exclude_none=True)
    total = sum(updates.get(name, getattr(goals, name) or 0) for name in RATIO_FIELDS)
    if total > 100:
        db.rollback()
        raise HTTPException(status_code=422, detail="전형 비율의 합은 100%를 넘을 수 없습니다.")

    for field, value in updates.items():
        setattr(goals, field, value)
    goals.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(goals)
    return CareerGoalsResponse.model_validate(goals)


def list_career_history(db: Session, user: User, student_id: int) -> list[CareerChangeHistory]:
    student = get_owned_student(db, user, student_id)
    return (
        db.query(CareerChangeHistory)
        .filter(CareerChangeHistory.student_id == student.id)
        .order_by(CareerChangeHistory.change_date.desc(), CareerChangeHistory.id.desc())
        .all()
    )


def add_career_history(
    db: Session, user: User, student_id: int, payload: CareerHistoryCreateRequest
) -> CareerChangeHistory:
    student = get_owned_student(db, user, student_id)
    entry = CareerChangeHistory(
        student_id=student.id,
        change_date=payload.change_date or date.today(),
        previous_career=payload.previous_career,
        new_career=payload.new_career.strip(),
        reason=payload.reason,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def delete_career_history(db: Session, user: User, student_id: int, history_id: int) -> None:
    student = get_owned_student(db, user, student_id)
    entry = db.get(CareerChangeHistory, history_id)
    if entry is None or entry.student_id != student.id:
        raise HTTPException(status_code=404, detail="Career history entry not found.")
    db.delete(entry)
    db.commit()
