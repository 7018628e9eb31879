"""Room settings schema and validation helpers.

``RoomSettings`` is the strict wire model (camelCase aliases) used when a
host creates a room. Inside the state machine settings arrive as partial,
possibly malformed payloads, so ``coerce_partial`` validates each field on
its own and drops what it cannot use instead of rejecting the whole payload.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

log = logging.getLogger(__name__)

VALIDATION_RULES = {
    'sentence_length': (10, 40),
    'time_limit': (30, 120),
    'max_players': (2, 6),
}


class RoomSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sentence_length: int = Field(30, ge=10, le=40, alias='sentenceLength')
    time_limit: int = Field(60, ge=30, le=120, alias='timeLimit')
    max_players: int = Field(4, ge=2, le=6, alias='maxPlayers')
    theme: str = Field('tech', min_length=1)
    words: List[str] = Field(default_factory=list)

    @field_validator('words')
    @classmethod
    def strip_blank_words(cls, v: List[str]) -> List[str]:
        return [w.strip() for w in v if w and w.strip()]

    def to_payload(self) -> Dict[str, Any]:
        """Plain dict with wire (camelCase) keys, safe to broadcast."""
        return self.model_dump(by_alias=True)


class PartialRoomSettings(BaseModel):
    # Range limits are enforced where rooms are created; the state machine
    # accepts any positive value it is handed.
    model_config = ConfigDict(populate_by_name=True)

    sentence_length: Optional[int] = Field(None, ge=1, alias='sentenceLength')
    time_limit: Optional[int] = Field(None, ge=1, alias='timeLimit')
    max_players: Optional[int] = Field(None, ge=1, alias='maxPlayers')
    theme: Optional[str] = Field(None, min_length=1)
    words: Optional[List[str]] = None


DEFAULT_SETTINGS = RoomSettings()

# Applied by a guest replica until the host's settings arrive.
GUEST_DEFAULTS = RoomSettings(theme='random')


def coerce_partial(payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Return the usable fields of ``payload`` keyed by snake_case name.

    Accepts both wire aliases and field names. Falsy values are treated as
    absent; invalid values are logged and skipped.
    """
    if not payload:
        return {}
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=True)
    if not isinstance(payload, Mapping):
        log.warning(f"[settings-skip] not a mapping: {type(payload).__name__}")
        return {}

    result: Dict[str, Any] = {}
    for name, field in PartialRoomSettings.model_fields.items():
        key = field.alias if field.alias in payload else name
        value = payload.get(key)
        if not value:
            continue
        try:
            parsed = PartialRoomSettings.model_validate({name: value})
        except ValidationError as exc:
            log.warning(f"[settings-skip] field={key} value={value!r} errors={exc.error_count()}")
            continue
        result[name] = getattr(parsed, name)
    if 'words' in result:
        result['words'] = [w.strip() for w in result['words'] if w and w.strip()]
    return result


_USERNAME_RE = re.compile(r'^[a-zA-Z0-9_\s]+$')
RESTRICTED_NAMES = ('admin', 'test', 'null', 'undefined')


def validate_username(username: str) -> Optional[str]:
    """Return an error message for an unacceptable display name, else None."""
    trimmed = (username or '').strip()
    if len(trimmed) < 2:
        return 'Username must be at least 2 characters long'
    if len(trimmed) > 20:
        return 'Username must be 20 characters or less'
    if not _USERNAME_RE.match(trimmed):
        return 'Username can only contain letters, numbers, underscores, and spaces'
    lowered = trimmed.lower()
    if any(word in lowered for word in RESTRICTED_NAMES):
        return 'Username contains restricted words'
    return None
