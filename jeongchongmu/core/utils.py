"""
Utility functions for the client.
"""
from typing import Any, Iterable, Optional


def items_total(items: Iterable[Any]) -> int:
    """Sum price * quantity over an item breakdown."""
    return sum(item.price * item.quantity for item in items)


def extract_error_message(data: Any, default: str) -> str:
    """
    Pull a human readable message out of a backend error body.

    The backend answers either with a JSON object carrying `message`
    (or `error`), or with a bare string.
    """
    if isinstance(data, dict):
        message: Optional[str] = data.get("message") or data.get("error")
        if message:
            return str(message)
    elif isinstance(data, str) and data.strip():
        return data.strip()
    return default
