from datetime import date, datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from saenggibu.models.base import Base


class CareerGoals(Base):
    __tablename__ = "career_goals"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    career_field_1st = Column(String, default="")
    career_detail_1st = Column(String, default="")
    career_field_2nd = Column(String, default="")
    career_detail_2nd = Column(String, default="")
    target_univ_1_name = Column(String, default="")
    target_univ_1_dept = Column(String, default="")
    target_univ_2_name = Column(String, default="")
    target_univ_2_dept = Column(String, default="")
    target_univ_3_name = Column(String, default="")
    target_univ_3_dept = Column(String, default="")
    target_tier = Column(String, default="")  # '' / 최상위 / 상위 / 중상위 / 중위
    # percentages, 0-100 each
    admission_hakjong_ratio = Column(Integer, default=0)
    admission_gyogwa_ratio = Column(Integer, default=0)
    admission_nonsul_ratio = Column(Integer, default=0)
    admission_jeongsi_ratio = Column(Integer, default=0)
    field_keywords = Column(JSON, default=list)
    special_notes = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("Student", back_populates="career_goals")


class CareerChangeHistory(Base):
    __tablename__ = "career_change_history"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    change_date = Column(Date, default=date.today)
    previous_career = Column(String, default="")
    new_career = Column(String, nullable=False)
    reason = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("Student", back_populates="career_history")
