import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from mcqforge.core.config import settings

logger = logging.getLogger(__name__)


async def verify_backend_key(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Guards the generation envelope with MCQ_BACKEND_API_KEY.
    Open when no key is configured.
    """
    expected = settings.MCQ_BACKEND_API_KEY
    if not expected:
        return

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        logger.warning("[AUTH] ✗ Rejected generate-mcqs call with missing or invalid bearer key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
