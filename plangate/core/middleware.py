from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    Dependency returning the caller's session.
    The bearer token is forwarded to the finance API, which owns authentication.
    """
    logger.info("get_current_session: Entry")

    token = (credentials.credentials or "").strip()
    if not token:
        logger.error("get_current_session: Failure - empty bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("get_current_session: Success")
    return {'token': token}
