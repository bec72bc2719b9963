"""Classification vocabularies for 생기부 activity records.

All tables are built once at import time and are read-only afterwards.
"""
from types import MappingProxyType

CHANGCHE = "창체활동"
GYOGWA = "교과세특"
CATEGORY_MAINS = (CHANGCHE, GYOGWA)

BONGSA = "봉사활동"
CHANGCHE_TYPES = ("자율활동", "동아리활동", "진로활동", BONGSA)
CHANGCHE_SUBS = MappingProxyType(
    {
        "자율활동": ("특강", "학급활동", "학교행사", "캠페인", "자치활동"),
        "동아리활동": ("정규동아리", "자율동아리", "탐구활동", "발표"),
        "진로활동": ("진로탐색", "진로특강", "진로검사", "전공탐구", "직업체험"),
        BONGSA: (),
    }
)

GYOGWA_TYPES = ("수행평가", "교과외활동")
GYOGWA_SUBS = MappingProxyType(
    {
        "수행평가": ("발표", "보고서", "토론", "실험", "프로젝트", "포트폴리오"),
        "교과외활동": ("독서", "탐구", "발표", "멘토링", "자기주도학습"),
    }
)

SEMESTERS = ("1-1", "1-2", "2-1", "2-2", "3-1", "3-2")

STATUS_PENDING = "대기중"
STATUS_ANALYZING = "분석중"
STATUS_COMPLETE = "완료"
STATUS_FAILED = "실패"

# Compact wire format: short key -> canonical field
ENTRIES_KEY = "e"
COMPACT_KEYS = MappingProxyType(
    {
        "s": "semester",
        "c": "category_main",
        "ct": "changche_type",
        "cs": "changche_sub",
        "gt": "gyogwa_type",
        "gs": "gyogwa_sub",
        "gn": "gyogwa_subject_name",
        "bh": "bongsa_hours",
        "t": "title",
        "ac": "activity_content",
        "co": "conclusion",
        "rp": "research_plan",
        "ra": "reading_activities",
        "ec": "evaluation_competency",
    }
)

# Single-character codes per enum field
COMPACT_CODES = MappingProxyType(
    {
        "category_main": MappingProxyType({"창": CHANGCHE, "교": GYOGWA}),
        "changche_type": MappingProxyType(
            {"자": "자율활동", "동": "동아리활동", "진": "진로활동", "봉": BONGSA}
        ),
        "gyogwa_type": MappingProxyType({"수": "수행평가", "외": "교과외활동"}),
    }
)

CLASSIFICATION_FIELDS = (
    "semester",
    "category_main",
    "changche_type",
    "changche_sub",
    "gyogwa_type",
    "gyogwa_sub",
    "gyogwa_subject_name",
    "bongsa_hours",
)
CONTENT_FIELDS = (
    "title",
    "activity_content",
    "conclusion",
    "research_plan",
    "reading_activities",
    "evaluation_competency",
)
COMPETENCY_EXAMPLES = (
    "탐구역량",
    "논리적사고력",
    "문제해결력",
    "창의성",
    "협업능력",
    "의사소통능력",
    "자기주도성",
    "비판적사고력",
    "정보활용능력",
    "리더십",
)

TARGET_TIERS = ("최상위", "상위", "중상위", "중위")
CAREER_FIELDS = (
    "인문",
    "사회",
    "경영·경제",
    "교육",
    "법학",
    "자연과학",
    "공학",
    "의학·보건",
    "예술·체육",
    "농림·수산",
    "기타",
)
