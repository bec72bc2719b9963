from saenggibu.models.file_analysis import FileAnalysis
from saenggibu.models.uploaded_file import UploadedFile
from saenggibu.services import materializer
from saenggibu.services.compact_format import decode_entries
from saenggibu.services.materializer import StoredDocument, materialize_entries

THREE_ENTRIES = (
    '{"e":[{"s":"1-1","c":"창","ct":"자","t":"A"},'
    '{"s":"1-2","c":"교","gn":"수학","gt":"수","t":"B"},'
    '{"s":"2-1","c":"창","ct":"봉","bh":3,"t":"C"}]}'
)


def _document(storage_path="1/doc.docx"):
    return StoredDocument(
        file_name="활동보고서.docx",
        file_type="docx",
        file_size_bytes=1234,
        storage_path=storage_path,
    )


def test_every_entry_becomes_a_record_pair(db, student, consultant):
    entries = decode_entries(THREE_ENTRIES)
    result = materialize_entries(db, student, consultant.id, _document(), entries, raw_text="원문")

    assert result.count == 3
    assert result.failures == []
    assert [record.semester for record in result.files] == ["1-1", "1-2", "2-1"]
    assert {record.storage_path for record in result.files} == {"1/doc.docx"}
    assert all(record.analysis_status == "완료" for record in result.files)
    assert [analysis.file_id for analysis in result.analyses] == [record.id for record in result.files]
    assert result.files[2].bongsa_hours == 3.0


def test_only_first_entry_keeps_raw_text(db, student, consultant):
    entries = decode_entries(THREE_ENTRIES)
    result = materialize_entries(db, student, consultant.id, _document(), entries, raw_text="원문 텍스트")

    assert [analysis.raw_text for analysis in result.analyses] == ["원문 텍스트", "", ""]


def test_failed_entry_is_reported_and_skipped(db, student, consultant, monkeypatch):
    build = materializer._build_file_record

    def build_with_broken_first(student, uploaded_by, document, entry):
        record = build(student, uploaded_by, document, entry)
        if entry.title == "A":
            record.category_main = None  # violates NOT NULL
        return record

    monkeypatch.setattr(materializer, "_build_file_record", build_with_broken_first)
    entries = decode_entries(THREE_ENTRIES)
    result = materialize_entries(db, student, consultant.id, _document(), entries, raw_text="원문")

    assert result.count == 2
    assert [failure.index for failure in result.failures] == [0]
    assert [analysis.title for analysis in result.analyses] == ["B", "C"]
    # the first pair that was actually stored carries the raw text
    assert [analysis.raw_text for analysis in result.analyses] == ["원문", ""]
    assert db.query(UploadedFile).count() == 2
    assert db.query(FileAnalysis).count() == 2


def test_failed_analysis_insert_rolls_back_its_file_record(db, student, consultant, monkeypatch):
    build = materializer._build_analysis_record

    def build_with_broken_second(record, student, entry, raw_text):
        analysis = build(record, student, entry, raw_text)
        if entry.title == "B":
            analysis.file_id = None  # violates NOT NULL
        return analysis

    monkeypatch.setattr(materializer, "_build_analysis_record", build_with_broken_second)
    entries = decode_entries(THREE_ENTRIES)
    result = materialize_entries(db, student, consultant.id, _document(), entries, raw_text="원문")

    assert result.count == 2
    assert [failure.index for failure in result.failures] == [1]
    assert [record.semester for record in db.query(UploadedFile).order_by(UploadedFile.id)] == ["1-1", "2-1"]
    assert db.query(FileAnalysis).count() == 2
    assert db.query(UploadedFile).filter(UploadedFile.analysis_status == "실패").count() == 0
