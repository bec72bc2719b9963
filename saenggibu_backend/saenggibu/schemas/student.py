from datetime import datetime
import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

_PHONE_RE = re.compile(r"^01[016789]-?\d{3,4}-?\d{4}$")


def format_phone(value: str) -> str:
    nums = re.sub(r"\D", "", value)
    if len(nums) <= 3:
        return nums
    if len(nums) <= 7:
        return f"{nums[:3]}-{nums[3:]}"
    if len(nums) == 10:
        return f"{nums[:3]}-{nums[3:6]}-{nums[6:]}"
    return f"{nums[:3]}-{nums[3:7]}-{nums[7:11]}"


def _normalize_phone(value: str | None) -> str | None:
    if not value:
        return value
    formatted = format_phone(value)
    if not _PHONE_RE.match(formatted):
        raise ValueError("휴대폰 번호 형식이 올바르지 않습니다.")
    return formatted


class StudentCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    grade: str = Field(..., pattern=r"^[1-3]$")
    school_level: Literal["high", "middle"] = "high"
    consultant_name: str = ""
    high_school_name: str = ""
    enrollment_year: int | None = Field(None, ge=2000, le=2100)
    graduation_year: int | None = Field(None, ge=2000, le=2100)
    student_phone: str = ""
    parent_phone: str = ""

    normalize_phones = field_validator("student_phone", "parent_phone")(_normalize_phone)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("학생 이름을 입력해주세요.")
        return value


class StudentUpdateRequest(BaseModel):
    """All fields optional — only provided fields are written."""

    name: str | None = Field(None, min_length=1)
    grade: str | None = Field(None, pattern=r"^[1-3]$")
    consultant_name: str | None = None
    high_school_name: str | None = None
    enrollment_year: int | None = Field(None, ge=2000, le=2100)
    graduation_year: int | None = Field(None, ge=2000, le=2100)
    student_phone: str | None = None
    parent_phone: str | None = None

    normalize_phones = field_validator("student_phone", "parent_phone")(_normalize_phone)


class StudentActiveRequest(BaseModel):
    is_active: bool


class StudentResponse(BaseModel):
    id: int
    student_login_id: str
    name: str
    grade: str
    school_level: str | None = None
    consultant_name: str | None = ""
    high_school_name: str | None = ""
    enrollment_year: int | None = None
    graduation_year: int | None = None
    student_phone: str | None = ""
    parent_phone: str | None = ""
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
