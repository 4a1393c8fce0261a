"""Redaction engine for audit entries.

Scrubs secrets from structured data and free text before an entry is
queued for persistence:

- Seed phrases (12 or 24 lowercase words) are replaced wholesale.
- Stellar private keys (``S`` + 55 chars) are replaced; public keys
  (``G`` + 55 chars) are left alone.
- JWTs and bearer tokens are replaced, keeping the scheme word.
- Any value stored under a sensitive field name is replaced without
  looking at it.

The engine never raises. Redacting an already redacted value returns it
unchanged.
"""

import re
from collections.abc import Callable, Iterable
from typing import Union

from payaudit.config import RedactionConfig

REDACTION_MARKER = "[REDACTED]"

JSONValue = Union[str, int, float, bool, None, list["JSONValue"], dict[str, "JSONValue"]]

Replacement = Union[str, Callable[[re.Match[str]], str]]

DEFAULT_SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "secret",
        "privatekey",
        "private_key",
        "seedphrase",
        "seed_phrase",
        "mnemonic",
        "token",
        "apikey",
        "api_key",
        "auth",
        "authorization",
    }
)

PRIVATE_KEY_PATTERN = re.compile(r"S[A-Z0-9]{55}")
JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+")
BEARER_PATTERN = re.compile(r"(Bearer)\s+[A-Za-z0-9\-_]+", re.IGNORECASE)

_SEED_WORD = re.compile(r"[a-z]+")
_SEED_PHRASE_LENGTHS = (12, 24)


def _keep_scheme(match: re.Match[str]) -> str:
    return f"{match.group(1)} {REDACTION_MARKER}"


class RedactionEngine:
    """Pattern and field-name based scrubber for JSON-shaped values."""

    def __init__(self, custom_fields: Iterable[str] = ()) -> None:
        self._sensitive_fields = set(DEFAULT_SENSITIVE_FIELDS)
        for name in custom_fields:
            self.add_sensitive_field(name)

        # Applied in insertion order; JWTs go before bearer tokens so a
        # "Bearer eyJ..." header keeps its scheme word either way.
        self._patterns: dict[str, tuple[re.Pattern[str], Replacement]] = {
            "stellar_private_key": (PRIVATE_KEY_PATTERN, REDACTION_MARKER),
            "jwt_token": (JWT_PATTERN, REDACTION_MARKER),
            "bearer_token": (BEARER_PATTERN, _keep_scheme),
        }

    @classmethod
    def from_config(cls, config: RedactionConfig) -> "RedactionEngine":
        return cls(custom_fields=config.custom_fields)

    @property
    def sensitive_fields(self) -> frozenset[str]:
        return frozenset(self._sensitive_fields)

    def add_sensitive_field(self, name: str) -> None:
        """Treat ``name`` (case-insensitive) as a sensitive field."""
        self._sensitive_fields.add(name.lower())

    def add_pattern(
        self,
        name: str,
        pattern: re.Pattern[str] | str,
        replacement: Replacement = REDACTION_MARKER,
    ) -> None:
        """Register an extra substring pattern, applied after the built-ins."""
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        self._patterns[name] = (pattern, replacement)

    def redact(self, value: JSONValue) -> JSONValue:
        """Return a scrubbed copy of ``value``."""
        if isinstance(value, str):
            return self.redact_string(value)
        if isinstance(value, list):
            return [self.redact(item) for item in value]
        if isinstance(value, dict):
            return self._redact_mapping(value)
        return value

    def redact_string(self, value: str) -> str:
        if self.is_seed_phrase(value):
            return REDACTION_MARKER

        for pattern, replacement in self._patterns.values():
            value = pattern.sub(replacement, value)
        return value

    def is_sensitive_field(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._sensitive_fields

    def _redact_mapping(self, mapping: dict[str, JSONValue]) -> dict[str, JSONValue]:
        return {
            key: REDACTION_MARKER if self.is_sensitive_field(key) else self.redact(item)
            for key, item in mapping.items()
        }

    @staticmethod
    def is_seed_phrase(value: str) -> bool:
        """True for exactly 12 or 24 whitespace-separated lowercase words."""
        words = value.split()
        if len(words) not in _SEED_PHRASE_LENGTHS:
            return False
        return all(_SEED_WORD.fullmatch(word) for word in words)
