"""
Applications Shared Helpers

Blob key construction and date arithmetic shared by service.py and jobs.py.
"""

import mimetypes
import re
import secrets
import string
import time
import unicodedata
from datetime import UTC, datetime

_SLUG_INVALID_RE = re.compile(r"[^a-zA-Z0-9._-]+")
_SLUG_DASHES_RE = re.compile(r"-+")

_RANDOM_ALPHABET = string.ascii_letters + string.digits + "_-"

# mimetypes picks odd extensions for some document types
_EXTENSION_OVERRIDES = {
    "application/msword": "doc",
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}


def slugify(value: str) -> str:
    """
    Make a string safe for use inside a blob key.

    Accents are stripped, runs of other characters become a single dash,
    and the result is lower-cased with no leading or trailing dash.
    """
    decomposed = unicodedata.normalize("NFKD", value or "")
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _SLUG_INVALID_RE.sub("-", ascii_only)
    slug = _SLUG_DASHES_RE.sub("-", slug).strip("-")
    return slug.lower()


def random_id(length: int = 6) -> str:
    return "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(length))


def extension_for(content_type: str) -> str:
    """File extension for a MIME type, or 'bin' when unknown."""
    if content_type in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[content_type]
    guessed = mimetypes.guess_extension(content_type or "")
    return guessed.lstrip(".") if guessed else "bin"


def build_attachment_key(
    role: str,
    name: str,
    national_id_normalized: str,
    content_type: str,
    now_ms: int | None = None,
) -> str:
    """
    Build a collision-resistant blob key.

    Format: {role-slug}/{id-or-random}-{name-slug}-{epoch-ms}-{random}.{ext}
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    owner = national_id_normalized or random_id()
    return (
        f"{slugify(role)}/{owner}-{slugify(name)}-{now_ms}-{random_id()}"
        f".{extension_for(content_type)}"
    )


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_submitted_at(value: str, default: datetime) -> datetime:
    """
    Parse the optional caller-supplied submission timestamp (ISO-8601).

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    if not value:
        return default
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
