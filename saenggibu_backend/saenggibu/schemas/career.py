from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from saenggibu.core.taxonomy import CAREER_FIELDS, TARGET_TIERS


class CareerGoalsUpdateRequest(BaseModel):
    """Partial upsert of the career goal form."""

    career_field_1st: str | None = None
    career_detail_1st: str | None = None
    career_field_2nd: str | None = None
    career_detail_2nd: str | None = None
    target_univ_1_name: str | None = None
    target_univ_1_dept: str | None = None
    target_univ_2_name: str | None = None
    target_univ_2_dept: str | None = None
    target_univ_3_name: str | None = None
    target_univ_3_dept: str | None = None
    target_tier: str | None = None
    admission_hakjong_ratio: int | None = Field(None, ge=0, le=100)
    admission_gyogwa_ratio: int | None = Field(None, ge=0, le=100)
    admission_nonsul_ratio: int | None = Field(None, ge=0, le=100)
    admission_jeongsi_ratio: int | None = Field(None, ge=0, le=100)
    field_keywords: list[str] | None = None
    special_notes: str | None = None

    @field_validator("career_field_1st", "career_field_2nd")
    @classmethod
    def _check_field(cls, value: str | None) -> str | None:
        if value and value not in CAREER_FIELDS:
            raise ValueError(f"진로 계열은 {', '.join(CAREER_FIELDS)} 중 하나여야 합니다.")
        return value

    @field_validator("target_tier")
    @classmethod
    def _check_tier(cls, value: str | None) -> str | None:
        if value and value not in TARGET_TIERS:
            raise ValueError(f"목표 수준은 {', '.join(TARGET_TIERS)} 중 하나여야 합니다.")
        return value

    @field_validator("field_keywords")
    @classmethod
    def _clean_keywords(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        return [keyword.strip() for keyword in value if keyword and keyword.strip()]


class CareerGoalsResponse(BaseModel):
    student_id: int
    career_field_1st: str | None = ""
    career_detail_1st: str | None = ""
    career_field_2nd: str | None = ""
    career_detail_2nd: str | None = ""
    target_univ_1_name: str | None = ""
    target_univ_1_dept: str | None = ""
    target_univ_2_name: str | None = ""
    target_univ_2_dept: str | None = ""
    target_univ_3_name: str | None = ""
    target_univ_3_dept: str | None = ""
    target_tier: str | None = ""
    admission_hakjong_ratio: int | None = 0
    admission_gyogwa_ratio: int | None = 0
    admission_nonsul_ratio: int | None = 0
    admission_jeongsi_ratio: int | None = 0
    field_keywords: list[str] | None = []
    special_notes: str | None = ""
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CareerHistoryCreateRequest(BaseModel):
    change_date: date | None = None
    previous_career: str = ""
    new_career: str = Field(..., min_length=1)
    reason: str = ""


class CareerHistoryResponse(BaseModel):
    id: int
    student_id: int
    change_date: date | None = None
    previous_career: str | None = ""
    new_career: str
    reason: str | None = ""
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
