from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from saenggibu.core.taxonomy import STATUS_PENDING
from saenggibu.models.base import Base


class UploadedFile(Base):
    """One extracted entry of a stored document.

    Several rows may share ``storage_path`` when a single document yields
    several entries; the blob is removed with the last of them.
    """

    __tablename__ = "uploaded_files"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=False)  # pdf / docx / png ...
    file_size_bytes = Column(Integer, default=0)
    storage_path = Column(String, nullable=False, index=True)

    semester = Column(String, default="")  # 1-1 .. 3-2
    category_main = Column(String, nullable=False)  # 창체활동 / 교과세특
    changche_type = Column(String, nullable=True)
    changche_sub = Column(String, default="")
    gyogwa_type = Column(String, nullable=True)
    gyogwa_sub = Column(String, default="")
    gyogwa_subject_name = Column(String, default="")
    bongsa_hours = Column(Float, nullable=True)

    analysis_status = Column(String, default=STATUS_PENDING)  # 대기중 / 분석중 / 완료 / 실패
    analysis_error = Column(Text, nullable=True)
    analysis_started_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("Student", back_populates="files")
    analysis = relationship(
        "FileAnalysis",
        back_populates="file",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
