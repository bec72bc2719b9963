from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from saenggibu.models.file_analysis import FileAnalysis


class UploadedFileResponse(BaseModel):
    id: int
    student_id: int
    file_name: str
    file_type: str
    file_size_bytes: int | None = 0
    storage_path: str
    semester: str | None = ""
    category_main: str
    changche_type: str | None = None
    changche_sub: str | None = ""
    gyogwa_type: str | None = None
    gyogwa_sub: str | None = ""
    gyogwa_subject_name: str | None = ""
    bongsa_hours: float | None = None
    analysis_status: str
    analysis_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class FileAnalysisResponse(BaseModel):
    id: int
    file_id: int
    student_id: int
    title: str | None = ""
    activity_content: str | None = ""
    conclusion: str | None = ""
    research_plan: str | None = ""
    reading_activities: str | None = ""
    evaluation_competency: str | None = ""
    is_edited: bool = False
    # raw_text itself stays server-side
    has_raw_text: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_record(cls, analysis: FileAnalysis) -> "FileAnalysisResponse":
        return cls.model_validate(analysis).model_copy(
            update={"has_raw_text": bool((analysis.raw_text or "").strip())}
        )


class EntryFailure(BaseModel):
    index: int
    error: str


class AnalyzeUploadResponse(BaseModel):
    success: bool = True
    count: int
    files: list[UploadedFileResponse]
    analyses: list[FileAnalysisResponse]
    failures: list[EntryFailure] = []


class ReanalyzeRequest(BaseModel):
    reanalyze: Literal[True] = True
    file_id: int


class ReanalyzeResponse(BaseModel):
    success: bool = True
    file: UploadedFileResponse
    analysis: FileAnalysisResponse


class AnalysisUpdateRequest(BaseModel):
    title: str | None = None
    activity_content: str | None = None
    conclusion: str | None = None
    research_plan: str | None = None
    reading_activities: str | None = None
    evaluation_competency: str | None = None


class ClassificationUpdateRequest(BaseModel):
    semester: str | None = None
    category_main: str | None = None
    changche_type: str | None = None
    changche_sub: str | None = None
    gyogwa_type: str | None = None
    gyogwa_sub: str | None = None
    gyogwa_subject_name: str | None = None
    bongsa_hours: float | None = Field(None, ge=0)


class DeleteResponse(BaseModel):
    success: bool = True
    deleted: int
    blob_removed: bool
