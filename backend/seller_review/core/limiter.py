"""Rate limiter singleton, imported from here to avoid circular deps."""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


def reviewer_or_address(request: Request) -> str:
    """Limit per reviewer when the gateway forwards one, else per client address."""
    reviewer = request.headers.get("x-reviewer", "").strip().lower()
    return reviewer or get_remote_address(request)


limiter = Limiter(key_func=reviewer_or_address)
