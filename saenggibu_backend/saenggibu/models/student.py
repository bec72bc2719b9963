from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from saenggibu.models.base import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_login_id = Column(String, nullable=False, unique=True, index=True)  # e.g. h02007
    access_code = Column(String, default="")
    name = Column(String, nullable=False)
    school_level = Column(String, default="high")  # high / middle
    grade = Column(String, nullable=False)  # "1".."3"
    enrollment_year = Column(Integer, nullable=True)
    graduation_year = Column(Integer, nullable=True)
    high_school_name = Column(String, default="")
    student_phone = Column(String, default="")
    parent_phone = Column(String, default="")
    consultant_name = Column(String, default="")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    files = relationship("UploadedFile", back_populates="student", cascade="all, delete-orphan")
    career_goals = relationship(
        "CareerGoals", back_populates="student", uselist=False, cascade="all, delete-orphan"
    )
    career_history = relationship(
        "CareerChangeHistory", back_populates="student", cascade="all, delete-orphan"
    )
