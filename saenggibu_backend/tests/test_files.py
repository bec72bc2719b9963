from datetime import datetime, timedelta

import pytest

from saenggibu.core.errors import Forbidden, InvalidClassification, NotFound
from saenggibu.models.file_analysis import FileAnalysis
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.schemas.file import AnalysisUpdateRequest, ClassificationUpdateRequest
from saenggibu.services.analysis import analyze_upload
from saenggibu.services.files import (
    delete_batch,
    delete_file,
    get_analysis,
    list_files,
    read_file_blob,
    reclassify_file,
    sweep_stale_analyses,
    update_analysis,
)


@pytest.fixture
def uploaded(db, consultant, student, report_docx, fake_llm, store):
    return analyze_upload(db, consultant, student.id, "활동보고서.docx", None, report_docx, fake_llm, store)


def _blob_exists(store, storage_path):
    return (store.root / storage_path).is_file()


def test_blob_survives_until_last_sibling_is_deleted(db, consultant, store, uploaded):
    first, second = uploaded["files"]
    storage_path = first.storage_path

    assert delete_file(db, consultant, first.id, store) is False
    assert _blob_exists(store, storage_path)
    assert db.query(FileAnalysis).count() == 1

    assert delete_file(db, consultant, second.id, store) is True
    assert not _blob_exists(store, storage_path)
    assert db.query(UploadedFile).count() == 0
    assert db.query(FileAnalysis).count() == 0


def test_batch_delete_removes_all_siblings_and_blob(db, consultant, store, uploaded):
    storage_path = uploaded["files"][0].storage_path

    assert delete_batch(db, consultant, storage_path, store) == 2
    assert db.query(UploadedFile).count() == 0
    assert not _blob_exists(store, storage_path)


def test_batch_delete_checks_ownership(db, other_consultant, store, uploaded):
    storage_path = uploaded["files"][0].storage_path
    with pytest.raises(Forbidden):
        delete_batch(db, other_consultant, storage_path, store)
    with pytest.raises(NotFound):
        delete_batch(db, other_consultant, "999/missing.pdf", store)
    assert _blob_exists(store, storage_path)


def test_files_are_listed_newest_first(db, consultant, student, uploaded):
    records = list_files(db, consultant, student.id)
    assert [record.id for record in records] == sorted((r.id for r in uploaded["files"]), reverse=True)


def test_manual_edit_sets_edited_flag(db, consultant, uploaded):
    analysis = uploaded["analyses"][0]
    updated = update_analysis(
        db, consultant, analysis.id, AnalysisUpdateRequest(conclusion="상담 후 보완한 결론")
    )

    assert updated.conclusion == "상담 후 보완한 결론"
    assert updated.title == "A특강"
    assert updated.is_edited is True
    assert get_analysis(db, consultant, analysis.file_id).id == analysis.id


def test_edit_by_other_consultant_is_forbidden(db, other_consultant, uploaded):
    with pytest.raises(Forbidden):
        update_analysis(db, other_consultant, uploaded["analyses"][0].id, AnalysisUpdateRequest(title="x"))


def test_reclassify_to_subject_clears_activity_fields(db, consultant, uploaded):
    record = uploaded["files"][0]
    updated = reclassify_file(
        db,
        consultant,
        record.id,
        ClassificationUpdateRequest(category_main="교과세특", gyogwa_type="교과외활동", gyogwa_sub="독서", gyogwa_subject_name="국어"),
    )

    assert updated.category_main == "교과세특"
    assert updated.changche_type is None
    assert updated.changche_sub == ""
    assert (updated.gyogwa_type, updated.gyogwa_sub, updated.gyogwa_subject_name) == ("교과외활동", "독서", "국어")


def test_reclassify_to_bongsa_keeps_hours(db, consultant, uploaded):
    record = uploaded["files"][0]
    updated = reclassify_file(
        db, consultant, record.id, ClassificationUpdateRequest(changche_type="봉사활동", bongsa_hours=6)
    )
    assert updated.changche_type == "봉사활동"
    assert updated.changche_sub == ""
    assert updated.bongsa_hours == 6.0

    updated = reclassify_file(db, consultant, record.id, ClassificationUpdateRequest(changche_type="진로활동"))
    assert updated.bongsa_hours is None


@pytest.mark.parametrize(
    "payload",
    [
        ClassificationUpdateRequest(category_main="기타"),
        ClassificationUpdateRequest(semester="4-1"),
        ClassificationUpdateRequest(changche_type="방과후활동"),
        ClassificationUpdateRequest(changche_sub="포트폴리오"),
        ClassificationUpdateRequest(gyogwa_type="수행평가", gyogwa_sub="축구"),
    ],
)
def test_reclassify_rejects_values_outside_taxonomy(db, consultant, uploaded, payload):
    record = uploaded["files"][0]
    with pytest.raises(InvalidClassification):
        reclassify_file(db, consultant, record.id, payload)
    db.refresh(record)
    assert record.changche_type == "자율활동"


def test_download_returns_stored_bytes(db, consultant, store, report_docx, uploaded):
    record, data = read_file_blob(db, consultant, uploaded["files"][1].id, store)
    assert record.file_name == "활동보고서.docx"
    assert data == report_docx


def test_stale_analyses_are_swept(db, uploaded):
    now = datetime.utcnow()
    stale, fresh = uploaded["files"]
    stale.analysis_status = "분석중"
    stale.analysis_started_at = now - timedelta(minutes=30)
    fresh.analysis_status = "분석중"
    fresh.analysis_started_at = now - timedelta(seconds=30)
    db.commit()

    assert sweep_stale_analyses(db, timeout_seconds=600, now=now) == 1
    db.refresh(stale)
    db.refresh(fresh)
    assert stale.analysis_status == "실패"
    assert stale.analysis_error
    assert fresh.analysis_status == "분석중"
