from saenggibu.models.career import CareerChangeHistory, CareerGoals
from saenggibu.models.file_analysis import FileAnalysis
from saenggibu.models.student import Student
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.models.user import User

__all__ = [
    "CareerChangeHistory",
    "CareerGoals",
    "FileAnalysis",
    "Student",
    "UploadedFile",
    "User",
]
