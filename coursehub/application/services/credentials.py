import re
import string
from typing import Optional

from ...exceptions import InvalidEmail, WeakPassword

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 50
PASSWORD_SYMBOLS = "!@#$%^&*"

_ALLOWED_PASSWORD = re.compile(r"[A-Za-z0-9!@#$%^&*]+")
_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def password_problem(password: str) -> Optional[str]:
    """Return the first rule ``password`` breaks, or None when it is acceptable."""
    if not isinstance(password, str):
        return "Password is required."
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        return f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters."
    if not _ALLOWED_PASSWORD.fullmatch(password):
        return f"Password may only contain letters, numbers and the symbols {PASSWORD_SYMBOLS}."
    if not any(c in string.ascii_lowercase for c in password):
        return "Password must include at least one lowercase letter."
    if not any(c in string.ascii_uppercase for c in password):
        return "Password must include at least one uppercase letter."
    if not any(c in string.digits for c in password):
        return "Password must include at least one number."
    if not any(c in PASSWORD_SYMBOLS for c in password):
        return f"Password must include at least one special character ({PASSWORD_SYMBOLS})."
    return None


def validate_password(password: str) -> None:
    problem = password_problem(password)
    if problem:
        raise WeakPassword(problem)


def validate_email(email: str) -> None:
    if not isinstance(email, str) or not _EMAIL.fullmatch(email):
        raise InvalidEmail()
