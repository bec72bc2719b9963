from saenggibu.core.taxonomy import COMPACT_KEYS
from saenggibu.services.extraction_prompt import build_extraction_prompt, build_user_message


def test_prompt_is_deterministic():
    assert build_extraction_prompt("2", 2023) == build_extraction_prompt("2", 2023)


def test_prompt_reflects_student_context():
    prompt = build_extraction_prompt("2", 2023)
    assert "현재 학년: 2학년" in prompt
    assert "입학년도: 2023년" in prompt
    assert build_extraction_prompt("3", 2022) != prompt
    assert "알 수 없음" in build_extraction_prompt(None, None)


def test_prompt_lists_compact_keys_and_vocabularies():
    prompt = build_extraction_prompt("1", 2025)
    for short, field in COMPACT_KEYS.items():
        assert f"{short} = {field}" in prompt
    for term in ("창체활동", "교과세특", "봉사활동", "수행평가", "교과외활동", "진로탐색", "포트폴리오"):
        assert term in prompt
    assert '"e":[' in prompt


def test_user_message_truncates_source_text():
    message = build_user_message("가" * 100, max_chars=10)
    assert message.endswith("가" * 10)
    assert "가" * 11 not in message
