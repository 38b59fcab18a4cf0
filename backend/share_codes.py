"""Share code helpers for spectator access (4-digit numeric codes)."""

import re
import secrets
from typing import Any

from constants import SHARE_CODE_LENGTH

_CODE_PATTERN = re.compile(rf"[0-9]{{{SHARE_CODE_LENGTH}}}")


def generate_share_code() -> str:
    """Generate a random code, zero padded ("0042")."""
    return str(secrets.randbelow(10 ** SHARE_CODE_LENGTH)).zfill(SHARE_CODE_LENGTH)


def is_valid_share_code_format(code: Any) -> bool:
    """Check that code is exactly 4 digits."""
    if not isinstance(code, str):
        return False
    return bool(_CODE_PATTERN.fullmatch(code))


def normalize_share_code(code: Any) -> str:
    """Trim user input; anything that isn't a string becomes ""."""
    if not isinstance(code, str):
        return ""
    return code.strip()
