"""Session identity: generation and validation of session ids.

Stateless helpers; nothing is remembered between calls.
"""

from __future__ import annotations

import re
import secrets
import time
import uuid
from datetime import datetime
from typing import Optional

from .errors import InvalidSessionIdError
from .models import utc_now

SESSION_ID_MAX_LENGTH = 128
READABLE_SESSION_PREFIX = "worklog"

_SESSION_ID_CHARS = re.compile(r"[A-Za-z0-9._-]+")


def generate_session_id() -> str:
    """Generate a fresh random session id (UUID4, 122 random bits)."""
    return str(uuid.uuid4())


def generate_readable_session_id(project_name: str, now: Optional[datetime] = None) -> str:
    """Generate a human-readable session id for a project.

    Format: ``worklog-<project>-<YYYY-MM-DD>-<NNNNNNRRRR>``: the last six
    digits of the epoch time in milliseconds followed by four random digits,
    so two sessions started in the same millisecond still differ. Very long
    project names are shortened to keep the id within SESSION_ID_MAX_LENGTH.
    """
    now = now or utc_now()
    suffix = str(int(time.time() * 1000))[-6:] + f"{secrets.randbelow(10_000):04d}"
    date = now.strftime("%Y-%m-%d")
    room = SESSION_ID_MAX_LENGTH - len(f"{READABLE_SESSION_PREFIX}--{date}-{suffix}")
    return f"{READABLE_SESSION_PREFIX}-{project_name[:room]}-{date}-{suffix}"


def is_valid_session_id(session_id: str) -> bool:
    """Check length 1-128 and charset alphanumeric, dot, underscore, hyphen."""
    if not isinstance(session_id, str):
        return False
    if not 1 <= len(session_id) <= SESSION_ID_MAX_LENGTH:
        return False
    return _SESSION_ID_CHARS.fullmatch(session_id) is not None


def get_or_create_session(session_id: Optional[str] = None) -> str:
    """Return the given session id if valid, or a new one when omitted.

    Raises:
        InvalidSessionIdError: If a session id is given but malformed.
    """
    if session_id:
        if not is_valid_session_id(session_id):
            raise InvalidSessionIdError(
                f"Invalid session ID format: {session_id}", session_id
            )
        return session_id
    return generate_session_id()
