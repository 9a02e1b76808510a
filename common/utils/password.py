"""
Password strength validation.

Applied before an account is created so a weak password never reaches the
credential provider.

Example:
    from common.utils import validate_password

    is_valid, errors = validate_password("weakpass")
    if not is_valid:
        print("Password errors:", errors)
"""

import re
from typing import List, Tuple


def validate_password(
    password: str,
    min_length: int = 8,
    require_letter: bool = True,
    require_digit: bool = True,
) -> Tuple[bool, List[str]]:
    """
    Validate password strength.

    Args:
        password: The password to validate
        min_length: Minimum password length
        require_letter: Require at least one letter (any case)
        require_digit: Require at least one digit

    Returns:
        Tuple of (is_valid: bool, errors: List[str])

    Examples:
        >>> is_valid, errors = validate_password("weak")
        >>> print(is_valid)
        False

        >>> is_valid, errors = validate_password("batting42cage")
        >>> print(is_valid)
        True
    """
    errors: List[str] = []

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters")

    if require_letter and not re.search(r"[A-Za-z]", password):
        errors.append("Password must contain at least one letter")

    if require_digit and not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")

    return len(errors) == 0, errors
