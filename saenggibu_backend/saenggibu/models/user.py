from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from saenggibu.models.base import Base


class User(Base):
    """A consultant account; students are owned through ``Student.created_by``."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
