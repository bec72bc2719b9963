"""System prompt for multi-entry activity extraction.

The prompt is rebuilt from the taxonomy tables on every call, but depends only
on its arguments, so identical student context always yields identical text.
"""
import json

from saenggibu.core.config import settings
from saenggibu.core.taxonomy import (
    CHANGCHE_SUBS,
    CHANGCHE_TYPES,
    COMPACT_CODES,
    COMPACT_KEYS,
    COMPETENCY_EXAMPLES,
    ENTRIES_KEY,
    GYOGWA_SUBS,
    GYOGWA_TYPES,
    SEMESTERS,
)

_FIELD_LABELS = {
    "semester": "학기 (예: 1-1, 2-2)",
    "category_main": "대분류 코드",
    "changche_type": "창체 활동 유형 코드",
    "changche_sub": "창체 세부 유형",
    "gyogwa_type": "교과 활동 유형 코드",
    "gyogwa_sub": "교과 세부 유형",
    "gyogwa_subject_name": "교과명 (예: 수학, 물리학I)",
    "bongsa_hours": "봉사 시간 (숫자, 봉사활동일 때만)",
    "title": "활동/탐구 제목 (간결하게)",
    "activity_content": "탐구 과정 요약 (핵심 위주 3-5문장)",
    "conclusion": "결과 및 시사점, 후속활동 (2-3문장)",
    "research_plan": "추가탐구계획",
    "reading_activities": "독서활동 (도서명과 저자)",
    "evaluation_competency": "드러나는 핵심 역량 2-3개, 쉼표로 구분",
}

_EXAMPLES = {
    ENTRIES_KEY: [
        {
            "s": "1-1",
            "c": "창",
            "ct": "자",
            "cs": "특강",
            "t": "인공지능 윤리 특강 참여",
            "ac": "AI 편향 사례를 조사하고 학급 토의에서 발표함.",
            "ec": "탐구역량, 비판적사고력",
        },
        {
            "s": "1-2",
            "c": "창",
            "ct": "봉",
            "bh": 6,
            "t": "지역 아동센터 학습 멘토링",
            "ec": "공동체의식",
        },
        {
            "s": "2-1",
            "c": "교",
            "gn": "수학",
            "gt": "수",
            "gs": "발표",
            "t": "미적분을 활용한 감염병 확산 모델 발표",
            "ac": "SIR 모델의 미분방정식을 세우고 매개변수 변화에 따른 그래프를 비교함.",
            "rp": "실제 지역 데이터로 모델을 검증할 계획",
            "ra": "수학의 눈으로 보는 세상(이광연)",
            "ec": "논리적사고력, 정보활용능력",
        },
    ]
}


def _code_table(field: str) -> str:
    codes = COMPACT_CODES[field]
    return ", ".join(f"{code}={value}" for code, value in codes.items())


def _vocabulary(subs) -> str:
    lines = []
    for parent, values in subs.items():
        joined = ", ".join(values) if values else "(세부 유형 없음)"
        lines.append(f"  - {parent}: {joined}")
    return "\n".join(lines)


def _grade_context(grade: str | None, enrollment_year: int | None) -> str:
    parts = []
    if grade:
        parts.append(f"현재 학년: {grade}학년")
    if enrollment_year:
        parts.append(f"입학년도: {enrollment_year}년 (3월 입학)")
    if not parts:
        return "학생 정보: 알 수 없음"
    return "학생 정보: " + ", ".join(parts)


def build_extraction_prompt(grade: str | None, enrollment_year: int | None) -> str:
    key_lines = "\n".join(
        f"  {short} = {field}: {_FIELD_LABELS[field]}" for short, field in COMPACT_KEYS.items()
    )
    example = json.dumps(_EXAMPLES, ensure_ascii=False, separators=(",", ":"))

    return f"""당신은 한국 고등학생의 학교생활기록부(생기부) 활동 보고서를 분석하는 전문가입니다.
문서를 읽고 그 안에 있는 활동 항목을 모두 찾아 분류하고 내용을 추출하여 JSON으로만 응답하세요.

{_grade_context(grade, enrollment_year)}

[가장 중요한 규칙: 완전성]
- 문서에 있는 서로 다른 활동/교과 항목을 빠짐없이 **모두** 추출하세요. 하나만 뽑지 마세요.
- 현재 학년만이 아니라 문서에 나오는 **모든 학년, 모든 학기**의 항목을 추출하세요.
  한 문서가 여러 학년에 걸쳐 있을 수 있습니다.
- 같은 학기라도 활동 유형이나 교과가 다르면 별도 항목입니다.

[분류 체계] 대분류는 두 가지이며 서로 배타적입니다.
1. 창체활동 (c=창): 활동 유형(ct) {", ".join(CHANGCHE_TYPES)} 중 하나와 세부 유형(cs)
{_vocabulary(CHANGCHE_SUBS)}
   - 봉사활동일 때만 봉사 시간(bh)을 숫자로 적습니다. 다른 유형에는 bh를 쓰지 마세요.
   - 창체활동에는 gn, gt, gs를 쓰지 마세요.
2. 교과세특 (c=교): 교과명(gn), 활동 유형(gt) {", ".join(GYOGWA_TYPES)} 중 하나와 세부 유형(gs)
{_vocabulary(GYOGWA_SUBS)}
   - 교과세특에는 ct, cs, bh를 쓰지 마세요.
세부 유형은 위 목록의 값만 사용하고, 맞는 값이 없으면 생략하세요.

[학기] 형식은 "학년-학기"이며 다음 값만 허용됩니다: {", ".join(SEMESTERS)}
- 날짜만 있으면 입학년도를 기준으로 학년을 계산하고, 3~8월은 1학기, 9~2월은 2학기로 판단하세요.

[응답 형식: 토큰 절약을 위한 축약 키]
- 최상위 객체는 {{"{ENTRIES_KEY}": [ ... ]}} 하나의 배열만 가집니다. 배열의 원소 하나가 항목 하나입니다.
- 각 항목은 반드시 아래 축약 키만 사용하세요. 전체 필드 이름(semester, title 등)은 절대 쓰지 마세요.
{key_lines}
- 코드 값: c는 {_code_table("category_main")} / ct는 {_code_table("changche_type")} / gt는 {_code_table("gyogwa_type")}
- 값이 없거나 비어 있는 키는 null이나 ""로 쓰지 말고 **키 자체를 생략**하세요.
- 역량(ec) 예시: {", ".join(COMPETENCY_EXAMPLES)}
- 모든 값은 한국어로 작성하고, 설명 없이 유효한 JSON만 응답하세요.

[예시]
{example}"""


def build_user_message(text: str, max_chars: int | None = None) -> str:
    limit = max_chars if max_chars is not None else settings.ai_max_source_chars
    return f"다음 활동 보고서를 분석해주세요:\n\n{text[:limit]}"


IMAGE_USER_MESSAGE = "첨부한 이미지는 활동 보고서입니다. 이미지 속 모든 활동 항목을 분석해주세요."
