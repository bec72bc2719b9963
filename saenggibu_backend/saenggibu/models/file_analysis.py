from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from saenggibu.models.base import Base


class FileAnalysis(Base):
    __tablename__ = "file_analysis"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(
        Integer,
        ForeignKey("uploaded_files.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, default="")
    activity_content = Column(Text, default="")
    conclusion = Column(Text, default="")
    research_plan = Column(Text, default="")
    reading_activities = Column(Text, default="")
    evaluation_competency = Column(Text, default="")
    is_edited = Column(Boolean, default=False)  # true once a consultant has touched a field
    # Only the first entry of a document keeps the source text
    raw_text = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    file = relationship("UploadedFile", back_populates="analysis")
