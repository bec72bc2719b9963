from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.orm import Session

from saenggibu.core.config import settings
from saenggibu.core.database import get_db
from saenggibu.core.storage import get_blob_store
from saenggibu.models.user import User
from saenggibu.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UserOut
from saenggibu.schemas.career import (
    CareerGoalsResponse,
    CareerGoalsUpdateRequest,
    CareerHistoryCreateRequest,
    CareerHistoryResponse,
)
from saenggibu.schemas.file import (
    AnalysisUpdateRequest,
    AnalyzeUploadResponse,
    ClassificationUpdateRequest,
    DeleteResponse,
    FileAnalysisResponse,
    ReanalyzeRequest,
    ReanalyzeResponse,
    UploadedFileResponse,
)
from saenggibu.schemas.student import (
    StudentActiveRequest,
    StudentCreateRequest,
    StudentResponse,
    StudentUpdateRequest,
)
from saenggibu.services.analysis import analyze_upload, reanalyze_file
from saenggibu.services.auth import get_current_user, login_user, register_user
from saenggibu.services.career import (
    add_career_history,
    delete_career_history,
    get_career_goals,
    list_career_history,
    upsert_career_goals,
)
from saenggibu.services.document_decoder import IMAGE_MIME_TYPES
from saenggibu.services.files import (
    delete_batch,
    delete_file,
    get_analysis,
    list_analyses,
    list_files,
    read_file_blob,
    reclassify_file,
    update_analysis,
)
from saenggibu.services.llm_client import LLMClient, get_llm_client
from saenggibu.services.students import (
    create_student,
    delete_student,
    get_owned_student,
    list_students,
    set_student_active,
    update_student,
)

router = APIRouter(prefix="/api")

_DOWNLOAD_MIME_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    **IMAGE_MIME_TYPES,
}


# ── Auth ──────────────────────────────────────────────────────────────────────

@router.post("/auth/register", response_model=TokenResponse, status_code=201)
def register_endpoint(payload: RegisterRequest, db: Session = Depends(get_db)):
    return register_user(db, payload)


@router.post("/auth/login", response_model=TokenResponse)
def login_endpoint(payload: LoginRequest, db: Session = Depends(get_db)):
    return login_user(db, payload)


@router.get("/me", response_model=UserOut)
def me_endpoint(current_user: User = Depends(get_current_user)):
    return current_user


# ── Students ──────────────────────────────────────────────────────────────────

@router.post("/students", response_model=StudentResponse, status_code=201)
def create_student_endpoint(
    payload: StudentCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return create_student(db, current_user, payload)


@router.get("/students", response_model=list[StudentResponse])
def list_students_endpoint(
    q: str | None = Query(None, description="Search by name, school or login id"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_students(db, current_user, q)


@router.get("/students/{student_id}", response_model=StudentResponse)
def get_student_endpoint(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_owned_student(db, current_user, student_id)


@router.put("/students/{student_id}", response_model=StudentResponse)
def update_student_endpoint(
    student_id: int,
    payload: StudentUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return update_student(db, current_user, student_id, payload)


@router.patch("/students/{student_id}/active", response_model=StudentResponse)
def set_student_active_endpoint(
    student_id: int,
    payload: StudentActiveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return set_student_active(db, current_user, student_id, payload.is_active)


@router.delete("/students/{student_id}", status_code=204)
def delete_student_endpoint(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    store=Depends(get_blob_store),
):
    delete_student(db, current_user, student_id, store)
    return Response(status_code=204)


# ── Career ────────────────────────────────────────────────────────────────────

@router.get("/students/{student_id}/career-goals", response_model=CareerGoalsResponse)
def get_career_goals_endpoint(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_career_goals(db, current_user, student_id)


@router.put("/students/{student_id}/career-goals", response_model=CareerGoalsResponse)
def upsert_career_goals_endpoint(
    student_id: int,
    payload: CareerGoalsUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return upsert_career_goals(db, current_user, student_id, payload)


@router.get("/students/{student_id}/career-history", response_model=list[CareerHistoryResponse])
def list_career_history_endpoint(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_career_history(db, current_user, student_id)


@router.post(
    "/students/{student_id}/career-history",
    response_model=CareerHistoryResponse,
    status_code=201,
)
def add_career_history_endpoint(
    student_id: int,
    payload: CareerHistoryCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return add_career_history(db, current_user, student_id, payload)


@router.delete("/students/{student_id}/career-history/{history_id}", status_code=204)
def delete_career_history_endpoint(
    student_id: int,
    history_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    delete_career_history(db, current_user, student_id, history_id)
    return Response(status_code=204)


# ── Analysis ──────────────────────────────────────────────────────────────────

@router.post("/analyze-file", response_model=AnalyzeUploadResponse)
def analyze_file_endpoint(
    student_id: int = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: LLMClient = Depends(get_llm_client),
    store=Depends(get_blob_store),
):
    # one byte past the limit is enough to reject it
    data = file.file.read(settings.max_upload_bytes + 1)
    result = analyze_upload(
        db,
        current_user,
        student_id,
        file.filename or "",
        file.content_type,
        data,
        client,
        store,
    )
    return AnalyzeUploadResponse(
        count=result["count"],
        files=[UploadedFileResponse.model_validate(record) for record in result["files"]],
        analyses=[FileAnalysisResponse.from_record(analysis) for analysis in result["analyses"]],
        failures=result["failures"],
    )


@router.post("/analyze-file/reanalyze", response_model=ReanalyzeResponse)
def reanalyze_file_endpoint(
    payload: ReanalyzeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: LLMClient = Depends(get_llm_client),
):
    record, analysis = reanalyze_file(db, current_user, payload.file_id, client)
    return ReanalyzeResponse(
        file=UploadedFileResponse.model_validate(record),
        analysis=FileAnalysisResponse.from_record(analysis),
    )


# ── Files ─────────────────────────────────────────────────────────────────────

@router.get("/students/{student_id}/files", response_model=list[UploadedFileResponse])
def list_files_endpoint(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_files(db, current_user, student_id)


@router.get("/students/{student_id}/analyses", response_model=list[FileAnalysisResponse])
def list_analyses_endpoint(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [FileAnalysisResponse.from_record(a) for a in list_analyses(db, current_user, student_id)]


@router.get("/files/{file_id}/analysis", response_model=FileAnalysisResponse)
def get_analysis_endpoint(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return FileAnalysisResponse.from_record(get_analysis(db, current_user, file_id))


@router.get("/files/{file_id}/download")
def download_file_endpoint(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    store=Depends(get_blob_store),
):
    record, data = read_file_blob(db, current_user, file_id, store)
    return Response(
        content=data,
        media_type=_DOWNLOAD_MIME_TYPES.get(record.file_type, "application/octet-stream"),
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(record.file_name)}"},
    )


@router.patch("/files/{file_id}", response_model=UploadedFileResponse)
def reclassify_file_endpoint(
    file_id: int,
    payload: ClassificationUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reclassify_file(db, current_user, file_id, payload)


@router.delete("/files/{file_id}", response_model=DeleteResponse)
def delete_file_endpoint(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    store=Depends(get_blob_store),
):
    blob_removed = delete_file(db, current_user, file_id, store)
    return DeleteResponse(deleted=1, blob_removed=blob_removed)


@router.delete("/files", response_model=DeleteResponse)
def delete_batch_endpoint(
    storage_path: str = Query(..., description="Storage path shared by the records to delete"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    store=Depends(get_blob_store),
):
    deleted = delete_batch(db, current_user, storage_path, store)
    return DeleteResponse(deleted=deleted, blob_removed=True)


@router.put("/analyses/{analysis_id}", response_model=FileAnalysisResponse)
def update_analysis_endpoint(
    analysis_id: int,
    payload: AnalysisUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return FileAnalysisResponse.from_record(update_analysis(db, current_user, analysis_id, payload))
