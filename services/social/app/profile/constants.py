"""
Profile domain — validation rules.
"""
from __future__ import annotations

import re

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._]{3,30}$")


def default_username(user_id) -> str:
    """Placeholder handle for lazily created profiles; the user can change it."""
    return f"user_{user_id.hex[:12]}"
