import pytest

from saenggibu.core.errors import (
    Forbidden,
    MalformedResponse,
    NoEntriesExtracted,
    NoRawText,
    PipelineError,
    ProviderError,
)
from saenggibu.models.file_analysis import FileAnalysis
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.services import materializer
from saenggibu.services.analysis import analyze_upload, reanalyze_file

REANALYZED = (
    '{"e":[{"s":"1-1","c":"창","ct":"동","cs":"탐구활동","t":"다시 분석한 제목",'
    '"ac":"재분석 내용","ec":"탐구역량"},{"s":"1-2","c":"창","t":"무시되는 항목"}]}'
)


def _upload(db, user, student, data, fake_llm, store, file_name="활동보고서.docx", content_type=None):
    return analyze_upload(db, user, student.id, file_name, content_type, data, fake_llm, store)


def test_upload_creates_one_pair_per_entry(db, consultant, student, report_docx, fake_llm, store):
    result = _upload(db, consultant, student, report_docx, fake_llm, store)

    assert result["success"] is True
    assert result["count"] == 2
    first, second = result["files"]
    assert (first.semester, first.category_main) == ("1-1", "창체활동")
    assert (second.semester, second.category_main) == ("1-2", "교과세특")
    assert first.storage_path == second.storage_path
    assert first.storage_path.startswith(f"{student.id}/")
    assert first.storage_path.endswith(".docx")
    assert first.uploaded_by == consultant.id

    raw_texts = [analysis.raw_text for analysis in result["analyses"]]
    assert "인공지능 특강" in raw_texts[0]
    assert raw_texts[1] == ""

    assert store.get(first.storage_path) == report_docx
    assert db.query(UploadedFile).count() == 2
    assert db.query(FileAnalysis).count() == 2


def test_prompt_carries_student_context_and_document_text(db, consultant, student, report_docx, fake_llm, store):
    _upload(db, consultant, student, report_docx, fake_llm, store)

    (call,) = fake_llm.calls
    assert "현재 학년: 2학년" in call["system_prompt"]
    assert "입학년도: 2023년" in call["system_prompt"]
    assert "미분을 활용한 발표" in call["user_text"]
    assert call["image"] is None


def test_image_upload_keeps_no_raw_text(db, consultant, student, fake_llm, store):
    result = _upload(db, consultant, student, b"\x89PNG fake", fake_llm, store, "scan.png", "image/png")

    assert fake_llm.calls[0]["image"].mime_type == "image/png"
    assert all(analysis.raw_text == "" for analysis in result["analyses"])
    assert all(record.file_type == "png" for record in result["files"])


def test_other_consultant_cannot_upload(db, other_consultant, student, report_docx, fake_llm, store):
    with pytest.raises(Forbidden):
        _upload(db, other_consultant, student, report_docx, fake_llm, store)
    assert fake_llm.calls == []
    assert db.query(UploadedFile).count() == 0


@pytest.mark.parametrize(
    "response, error",
    [("분석 불가", MalformedResponse), ('{"e":[]}', NoEntriesExtracted)],
)
def test_failed_extraction_stores_nothing(db, consultant, student, report_docx, fake_llm, store, response, error):
    fake_llm.responses = [response]
    with pytest.raises(error):
        _upload(db, consultant, student, report_docx, fake_llm, store)

    assert db.query(UploadedFile).count() == 0
    assert not store.root.exists() or not any(store.root.rglob("*.docx"))


def test_reanalysis_overwrites_in_place(db, consultant, student, report_docx, fake_llm, store):
    result = _upload(db, consultant, student, report_docx, fake_llm, store)
    target = result["files"][0]
    result["analyses"][0].is_edited = True
    db.commit()

    fake_llm.responses = [REANALYZED]
    record, analysis = reanalyze_file(db, consultant, target.id, fake_llm)

    assert record.id == target.id
    assert record.changche_type == "동아리활동"
    assert record.changche_sub == "탐구활동"
    assert record.analysis_status == "완료"
    assert record.analysis_error is None
    assert record.analysis_started_at is not None
    assert analysis.title == "다시 분석한 제목"
    assert analysis.is_edited is False
    assert "인공지능 특강" in analysis.raw_text
    # the second entry of the reanalysis response is not materialized
    assert db.query(UploadedFile).count() == 2
    assert db.query(FileAnalysis).count() == 2


def test_reanalysis_is_repeatable(db, consultant, student, report_docx, fake_llm, store):
    result = _upload(db, consultant, student, report_docx, fake_llm, store)
    file_id = result["files"][0].id

    fake_llm.responses = [REANALYZED]
    first_record, first_analysis = reanalyze_file(db, consultant, file_id, fake_llm)
    first_state = (first_record.changche_type, first_analysis.title, first_analysis.activity_content)
    second_record, second_analysis = reanalyze_file(db, consultant, file_id, fake_llm)

    assert (second_record.changche_type, second_analysis.title, second_analysis.activity_content) == first_state
    assert db.query(FileAnalysis).filter(FileAnalysis.file_id == file_id).count() == 1


def test_sibling_without_raw_text_cannot_be_reanalyzed(db, consultant, student, report_docx, fake_llm, store):
    result = _upload(db, consultant, student, report_docx, fake_llm, store)
    sibling = result["files"][1]

    with pytest.raises(NoRawText):
        reanalyze_file(db, consultant, sibling.id, fake_llm)
    db.refresh(sibling)
    assert sibling.analysis_status == "완료"
    assert len(fake_llm.calls) == 1


def test_reanalysis_failure_marks_record_and_keeps_fields(db, consultant, student, report_docx, fake_llm, store):
    result = _upload(db, consultant, student, report_docx, fake_llm, store)
    target = result["files"][0]

    fake_llm.error = ProviderError("OpenAI API 오류 (500): upstream down", upstream_status=500)
    with pytest.raises(ProviderError):
        reanalyze_file(db, consultant, target.id, fake_llm)

    db.refresh(target)
    assert target.analysis_status == "실패"
    assert target.analysis_error == "OpenAI API 오류 (500): upstream down"
    assert target.changche_type == "자율활동"
    assert target.analysis.title == "A특강"


def test_reanalysis_checks_ownership_before_calling_the_model(
    db, consultant, other_consultant, student, report_docx, fake_llm, store
):
    result = _upload(db, consultant, student, report_docx, fake_llm, store)
    target = result["files"][0]

    with pytest.raises(Forbidden):
        reanalyze_file(db, other_consultant, target.id, fake_llm)
    assert len(fake_llm.calls) == 1
    db.refresh(target)
    assert target.analysis_status == "완료"


def test_upload_leaves_nothing_when_no_entry_persists(db, consultant, student, report_docx, fake_llm, store, monkeypatch):
    build = materializer._build_analysis_record

    def build_without_file(record, student, entry, raw_text):
        analysis = build(record, student, entry, raw_text)
        analysis.file_id = None  # violates NOT NULL
        return analysis

    monkeypatch.setattr(materializer, "_build_analysis_record", build_without_file)
    with pytest.raises(PipelineError) as excinfo:
        _upload(db, consultant, student, report_docx, fake_llm, store)

    assert excinfo.value.status_code == 500
    assert db.query(UploadedFile).count() == 0
    assert db.query(FileAnalysis).count() == 0
    assert not any(path.is_file() for path in store.root.rglob("*"))


def test_unexpected_reanalysis_error_does_not_leave_record_analyzing(
    db, consultant, student, report_docx, fake_llm, store
):
    result = _upload(db, consultant, student, report_docx, fake_llm, store)
    target = result["files"][0]

    fake_llm.error = AttributeError("'list' object has no attribute 'get'")
    with pytest.raises(AttributeError):
        reanalyze_file(db, consultant, target.id, fake_llm)

    db.refresh(target)
    assert target.analysis_status == "실패"
    assert target.analysis_error
    assert target.analysis.title == "A특강"
