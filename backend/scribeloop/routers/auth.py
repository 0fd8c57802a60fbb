import hmac
import logging

from fastapi import Header, HTTPException

from .. import config

logger = logging.getLogger(__name__)


def is_admin(token: str | None) -> bool:
    """Constant-time comparison against ADMIN_SECRET; always False when unset."""
    if not token or not config.ADMIN_SECRET:
        return False
    return hmac.compare_digest(token.encode(), config.ADMIN_SECRET.encode())


async def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    """Dependency for author-only routes."""
    if not is_admin(x_admin_token):
        logger.warning("Rejected request with missing or invalid admin token")
        raise HTTPException(status_code=401, detail="Unauthorized")
