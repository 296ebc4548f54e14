"""Storage quantity parsing ("10Gi", "500M", "1.5Ti")."""

import math

from kubernetes.utils.quantity import parse_quantity

from .exceptions import InvalidSizeError


def parse_size(size: str) -> int:
    """Parse a human storage size into whole bytes.

    Raises:
        InvalidSizeError: The string is not a valid, positive quantity.
    """
    if not size or not size.strip():
        raise InvalidSizeError("invalid size format: empty size")
    try:
        value = parse_quantity(size.strip())
    except (ValueError, TypeError) as e:
        raise InvalidSizeError(f"invalid size format: {size!r}") from e
    if not value.is_finite() or value <= 0:
        raise InvalidSizeError(f"invalid size format: {size!r} must be a positive number")
    return int(math.ceil(value))


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with binary units for progress lines."""
    value = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if value < 1024 or unit == "TiB":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{num_bytes}B"
