"""Query parameter parsing utilities."""

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def parse_int_param(value: str | None, minimum: int | None = None) -> int | None:
    """
    Parse string to int, returning None for empty/invalid values.

    Values below minimum are treated as invalid.
    """
    if not value:
        return None
    try:
        parsed = int(value.strip())
    except (ValueError, TypeError):
        return None
    if minimum is not None and parsed < minimum:
        return None
    return parsed


def parse_bool_param(value: str | None, default: bool = False) -> bool:
    """Parse a flag such as "true"/"1"/"yes"; unrecognised values give default."""
    if not value:
        return default
    lower = value.strip().lower()
    if lower in _TRUE_VALUES:
        return True
    if lower in _FALSE_VALUES:
        return False
    return default


def parse_symbols_param(value: str | None) -> list[str]:
    """Split a comma-separated symbol list, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
