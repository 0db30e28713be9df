import logging
import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import NotAuthenticatedError
from app.models.user import User
from app.services import directory_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> uuid.UUID:
    """Verify an access token from the auth provider and return its subject."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
    except JWTError as e:
        raise NotAuthenticatedError("Invalid or expired token") from e

    sub = payload.get("sub")
    try:
        return uuid.UUID(str(sub))
    except ValueError as e:
        raise NotAuthenticatedError("Invalid token subject") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise NotAuthenticatedError()

    user_id = decode_access_token(credentials.credentials)
    user = await directory_service.get_user(db, user_id)
    if user is None:
        logger.warning("Token subject %s has no profile", user_id)
        raise NotAuthenticatedError("Profile not found")
    return user
