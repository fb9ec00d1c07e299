"""Schedule identifier generation.

Schedules are shared by reading out a short code, so ids are 6 uppercase
alphanumeric characters. Uniqueness is checked at creation time by the store's
create-if-absent, not here.
"""

from __future__ import annotations

import re
import secrets
import string

SCHEDULE_ID_LENGTH = 6
SCHEDULE_ID_ALPHABET = string.digits + string.ascii_uppercase

_SCHEDULE_ID_PATTERN = re.compile(rf"^[0-9A-Z]{{{SCHEDULE_ID_LENGTH}}}$")


def generate_schedule_id() -> str:
    """Draw a random schedule id."""
    return "".join(secrets.choice(SCHEDULE_ID_ALPHABET) for _ in range(SCHEDULE_ID_LENGTH))


def is_schedule_id(value: str) -> bool:
    """True when ``value`` has the shape of a schedule id."""
    return bool(_SCHEDULE_ID_PATTERN.match(value))
