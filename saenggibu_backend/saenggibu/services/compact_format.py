"""Decoding of the model's extraction response.

The model is asked for the compact shape ``{"e": [{"s": "1-1", "c": "창", ...}]}``.
Older prompts produced verbose field names, either as an array or as a single
object, and those shapes are still accepted. Every shape is normalized into
:class:`ExtractedEntry` before anything downstream sees it.
"""
from dataclasses import dataclass
import json
import re
from typing import Any

import structlog

from saenggibu.core.errors import MalformedResponse, NoEntriesExtracted
from saenggibu.core.taxonomy import (
    BONGSA,
    CATEGORY_MAINS,
    CHANGCHE,
    CHANGCHE_SUBS,
    CHANGCHE_TYPES,
    CLASSIFICATION_FIELDS,
    COMPACT_CODES,
    COMPACT_KEYS,
    CONTENT_FIELDS,
    ENTRIES_KEY,
    GYOGWA,
    GYOGWA_SUBS,
    GYOGWA_TYPES,
    SEMESTERS,
)

logger = structlog.get_logger(__name__)

CANONICAL_FIELDS = frozenset(CLASSIFICATION_FIELDS + CONTENT_FIELDS)
VERBOSE_ARRAY_KEYS = ("entries", "activities", "items", "records")

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_SEMESTER_RE = re.compile(r"([1-3])\s*(?:-|학년)\s*([12])")
_HOURS_RE = re.compile(r"\d+(?:\.\d+)?")
_CLOSERS = {"{": "}", "[": "]"}


@dataclass
class ExtractedEntry:
    semester: str = ""
    category_main: str = CHANGCHE
    changche_type: str | None = None
    changche_sub: str = ""
    gyogwa_type: str | None = None
    gyogwa_sub: str = ""
    gyogwa_subject_name: str = ""
    bongsa_hours: float | None = None
    title: str = ""
    activity_content: str = ""
    conclusion: str = ""
    research_plan: str = ""
    reading_activities: str = ""
    evaluation_competency: str = ""

    def classification(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in CLASSIFICATION_FIELDS}

    def content(self) -> dict[str, str]:
        return {field: getattr(self, field) for field in CONTENT_FIELDS}

    def has_content(self) -> bool:
        return any(getattr(self, field) for field in CONTENT_FIELDS)


# ── Truncation repair ────────────────────────────────────────────────────────


def _closing_sequence(prefix: str) -> str | None:
    """Brackets needed to close ``prefix``; None if it ends inside a string or is unbalanced."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for char in prefix:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            if not stack or stack.pop() != char:
                return None
    if in_string:
        return None
    return "".join(reversed(stack))


def repair_truncated_json(text: str) -> str | None:
    """Cut ``text`` back to its last complete object and re-balance the brackets.

    Walks ``}`` positions from the end of the string; the first cut that closes
    into valid JSON wins. Returns None when no cut point works.
    """
    end = len(text)
    while True:
        idx = text.rfind("}", 0, end)
        if idx == -1:
            return None
        prefix = text[: idx + 1]
        closing = _closing_sequence(prefix)
        if closing is not None:
            candidate = prefix + closing
            try:
                json.loads(candidate)
            except ValueError:
                pass
            else:
                return candidate
        end = idx


def _strip_wrapping(raw: str) -> str:
    text = _FENCE_RE.sub("", raw.strip()).strip()
    if text and text[0] not in "{[":
        start = text.find("{")
        if start != -1:
            text = text[start:]
    return text


def parse_response(raw: str) -> Any:
    text = _strip_wrapping(raw or "")
    try:
        return json.loads(text)
    except ValueError:
        pass

    repaired = repair_truncated_json(text)
    if repaired is None:
        logger.warning("response_unrecoverable", chars=len(text), tail=text[-80:])
        raise MalformedResponse("AI 응답을 JSON으로 해석할 수 없습니다.")
    logger.warning("response_truncation_repaired", original_chars=len(text), kept_chars=len(repaired))
    return json.loads(repaired)


# ── Shape selection and expansion ────────────────────────────────────────────


def expand_compact(item: dict[str, Any]) -> dict[str, Any]:
    """Map abbreviated keys and single-character codes to canonical fields.

    Canonical keys that slip into a compact entry are kept as they are.
    """
    fields: dict[str, Any] = {}
    for key, value in item.items():
        field = COMPACT_KEYS.get(key) or (key if key in CANONICAL_FIELDS else None)
        if field is None:
            continue
        codes = COMPACT_CODES.get(field)
        if codes is not None and isinstance(value, str):
            value = codes.get(value.strip(), value.strip())
        fields[field] = value
    return fields


def _verbose_fields(item: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in item.items() if key in CANONICAL_FIELDS}


def select_entries(data: Any) -> tuple[str, list[dict[str, Any]]]:
    """Pick the response shape: compact array, then verbose array, then a single legacy object."""
    if isinstance(data, dict) and isinstance(data.get(ENTRIES_KEY), list):
        return "compact", [expand_compact(item) for item in data[ENTRIES_KEY] if isinstance(item, dict)]

    items = data if isinstance(data, list) else None
    if isinstance(data, dict):
        for key in VERBOSE_ARRAY_KEYS:
            if isinstance(data.get(key), list):
                items = data[key]
                break
    if items is not None:
        return "verbose", [_verbose_fields(item) for item in items if isinstance(item, dict)]

    if isinstance(data, dict) and CANONICAL_FIELDS.intersection(data):
        return "legacy", [_verbose_fields(data)]
    return "unknown", []


# ── Taxonomy normalization ───────────────────────────────────────────────────


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(part).strip() for part in value if str(part).strip())
    return str(value).strip()


def normalize_semester(value: Any) -> str:
    text = _text(value)
    if text in SEMESTERS:
        return text
    match = _SEMESTER_RE.search(text)
    if match:
        candidate = f"{match.group(1)}-{match.group(2)}"
        if candidate in SEMESTERS:
            return candidate
    return ""


def parse_hours(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else None
    match = _HOURS_RE.search(_text(value))
    return float(match.group(0)) if match else None


def _member(value: Any, allowed) -> str | None:
    text = _text(value)
    return text if text in allowed else None


def normalize_classification(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate classification values against the taxonomy and enforce category exclusivity.

    Unknown types become None, sub values outside their parent's vocabulary
    become "", and fields belonging to the other main category are cleared.
    """
    changche_type = _member(fields.get("changche_type"), CHANGCHE_TYPES)
    gyogwa_type = _member(fields.get("gyogwa_type"), GYOGWA_TYPES)
    subject = _text(fields.get("gyogwa_subject_name"))

    category = _member(fields.get("category_main"), CATEGORY_MAINS)
    if category is None:
        category = GYOGWA if (gyogwa_type or subject) and not changche_type else CHANGCHE

    result = {
        "semester": normalize_semester(fields.get("semester")),
        "category_main": category,
        "changche_type": None,
        "changche_sub": "",
        "gyogwa_type": None,
        "gyogwa_sub": "",
        "gyogwa_subject_name": "",
        "bongsa_hours": None,
    }
    if category == CHANGCHE:
        result["changche_type"] = changche_type
        if changche_type:
            result["changche_sub"] = _member(fields.get("changche_sub"), CHANGCHE_SUBS[changche_type]) or ""
        if changche_type == BONGSA:
            result["bongsa_hours"] = parse_hours(fields.get("bongsa_hours"))
    else:
        result["gyogwa_type"] = gyogwa_type
        result["gyogwa_subject_name"] = subject
        if gyogwa_type:
            result["gyogwa_sub"] = _member(fields.get("gyogwa_sub"), GYOGWA_SUBS[gyogwa_type]) or ""
    return result


def normalize_entry(fields: dict[str, Any]) -> ExtractedEntry:
    content = {field: _text(fields.get(field)) for field in CONTENT_FIELDS}
    return ExtractedEntry(**normalize_classification(fields), **content)


def decode_entries(raw: str) -> list[ExtractedEntry]:
    data = parse_response(raw)
    shape, items = select_entries(data)

    entries = [normalize_entry(item) for item in items]
    kept = [entry for entry in entries if entry.has_content()]
    logger.info(
        "entries_decoded",
        shape=shape,
        received=len(items),
        kept=len(kept),
        dropped=len(entries) - len(kept),
    )
    if not kept:
        raise NoEntriesExtracted("문서에서 활동 항목을 찾지 못했습니다.")
    return kept
