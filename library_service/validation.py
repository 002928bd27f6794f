import re

from .errors import ValidationError

# Largest value an INTEGER/BIGINT column holds
MAX_INT = 2 ** 63 - 1
# Width of the isbn column
MAX_ISBN_DIGITS = 32

_DIGITS = re.compile(r"[0-9]+")


def parse_isbn(value):
    """Accept an ISBN as a JSON integer or a string of ASCII digits."""
    if isinstance(value, bool):
        raise ValidationError("isbn must be an integer")
    if isinstance(value, int):
        isbn = value
    elif isinstance(value, str) and _DIGITS.fullmatch(value.strip()):
        digits = value.strip()
        if len(digits.lstrip("0")) > MAX_ISBN_DIGITS:
            raise ValidationError(f"isbn must be at most {MAX_ISBN_DIGITS} digits")
        try:
            isbn = int(digits)
        except ValueError:
            raise ValidationError("isbn must be an integer")
    else:
        raise ValidationError("isbn must be an integer")
    if isbn <= 0:
        raise ValidationError("isbn must be positive")
    if isbn >= 10 ** MAX_ISBN_DIGITS:
        raise ValidationError(f"isbn must be at most {MAX_ISBN_DIGITS} digits")
    return isbn


def parse_int(value, field, minimum=None, maximum=MAX_INT):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, str) and not re.fullmatch(r"[+-]?[0-9]+", value.strip()):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be at most {maximum}")
    return number


def require_name(value, field="name"):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()
