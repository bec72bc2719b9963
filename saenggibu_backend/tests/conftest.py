import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "local"

from io import BytesIO  # noqa: E402

from docx import Document as DocxDocument  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from saenggibu.core.database import build_engine, get_db  # noqa: E402
from saenggibu.core.security import create_access_token  # noqa: E402
from saenggibu.core.storage import LocalBlobStore, get_blob_store  # noqa: E402
from saenggibu.main import app  # noqa: E402
from saenggibu.models.base import Base  # noqa: E402
from saenggibu.models.student import Student  # noqa: E402
from saenggibu.models.user import User  # noqa: E402
from saenggibu.services.llm_client import LLMResponse, get_llm_client  # noqa: E402

TWO_ENTRY_RESPONSE = (
    '{"e":[{"s":"1-1","c":"창","ct":"자","cs":"특강","t":"A특강","ec":"탐구역량"},'
    '{"s":"1-2","c":"교","gn":"수학","gt":"수","gs":"발표","t":"B발표","ec":"논리적사고력"}]}'
)
SINGLE_ENTRY_RESPONSE = (
    '{"e":[{"s":"2-1","c":"창","ct":"진","cs":"전공탐구","t":"전공 탐구 보고서",'
    '"ac":"관심 학과의 교육과정을 조사함.","ec":"자기주도성"}]}'
)


class FakeLLMClient:
    """Returns canned responses in order; the last one repeats."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [TWO_ENTRY_RESPONSE])
        self.error = error
        self.calls = []

    def complete(self, system_prompt, user_text, image=None):
        self.calls.append({"system_prompt": system_prompt, "user_text": user_text, "image": image})
        if self.error is not None:
            raise self.error
        content = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return LLMResponse(content=content, finish_reason="stop", model="fake-model")


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads")


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def consultant(db):
    user = User(email="consultant@example.com", hashed_password="x", display_name="박상담")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_consultant(db):
    user = User(email="other@example.com", hashed_password="x")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def student(db, consultant):
    student = Student(
        created_by=consultant.id,
        student_login_id="h02001",
        name="김민준",
        grade="2",
        enrollment_year=2023,
        high_school_name="한빛고등학교",
    )
    db.add(student)
    db.commit()
    db.refresh(student)
    return student


@pytest.fixture
def make_docx():
    def _make(paragraphs, table_rows=()):
        document = DocxDocument()
        for text in paragraphs:
            document.add_paragraph(text)
        if table_rows:
            table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
            for r, row in enumerate(table_rows):
                for c, value in enumerate(row):
                    table.cell(r, c).text = value
        buffer = BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    return _make


@pytest.fixture
def report_docx(make_docx):
    return make_docx(
        [
            "1학년 1학기 자율활동: 인공지능 특강을 듣고 탐구 보고서를 작성함.",
            "1학년 2학기 수학: 미분을 활용한 발표를 진행함.",
        ]
    )


@pytest.fixture
def auth_headers(consultant):
    return {"Authorization": f"Bearer {create_access_token(consultant.id)}"}


@pytest.fixture
def client(db, fake_llm, store):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    app.dependency_overrides[get_blob_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
