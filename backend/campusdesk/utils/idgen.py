"""ID Generation Utilities"""
import time
import uuid
from .time import utc_now

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

# Wide enough for millisecond timestamps well past year 5000
_TIMESTAMP_WIDTH = 9


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36"""
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    """
    Generate a time-ordered entity ID
    
    A fixed-width base36 millisecond timestamp followed by 16 random hex
    characters from a UUID4. IDs sort by creation time and collide only if
    two share both the millisecond and 64 random bits.
    
    Examples:
        >>> generate_id()
        '0mgvz1k2x9f3b6c1d2e4a5b6c7d8'
    """
    timestamp = to_base36(int(time.time() * 1000)).rjust(_TIMESTAMP_WIDTH, "0")
    return f"{timestamp}{uuid.uuid4().hex[:16]}"


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing
    
    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = utc_now().strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
