from __future__ import annotations

import random
import time
import unicodedata
import uuid
from datetime import datetime, timezone
from typing import Iterable

from .runtime_constants import (
    MAX_CONNECTION_ID_LENGTH,
    MAX_ROOM_ID_LENGTH,
    ROOM_CODE_CHARS,
    ROOM_CODE_LENGTH,
)


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def random_id() -> str:
    return str(uuid.uuid4())


def random_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    return "".join(random.choice(ROOM_CODE_CHARS) for _ in range(max(4, length)))


def generate_question_id() -> str:
    return f"q_{now_ms()}_{uuid.uuid4().hex[:5]}"


def sanitize_room_id(raw: str | None) -> str:
    value = (raw or "").upper()
    filtered = "".join(ch for ch in value if ch.isalnum())
    return filtered[:MAX_ROOM_ID_LENGTH]


def sanitize_connection_id(raw: str | None) -> str | None:
    value = str(raw or "").strip()
    if not value:
        return None
    filtered = "".join(ch for ch in value if ch.isalnum() or ch in {"-", "_"})
    return filtered[:MAX_CONNECTION_ID_LENGTH] or None


def normalize_answer(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip().lower()


def answers_match(given: Iterable[str], expected: Iterable[str]) -> bool:
    """Compare two answer lists ignoring order, case, whitespace and accents."""
    given_list = list(given)
    expected_list = list(expected)
    if len(given_list) != len(expected_list):
        return False
    return sorted(map(normalize_answer, given_list)) == sorted(map(normalize_answer, expected_list))
