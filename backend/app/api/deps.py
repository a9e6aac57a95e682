"""FastAPI dependency injection — auth guard and session factory."""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app import config
from app.db import get_session_factory

security = HTTPBearer(auto_error=False)


async def get_current_subject(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Validate the bearer token and return its ``sub`` claim.

    User accounts live in the surrounding platform; this service only checks
    that the token was issued with the shared secret.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM]
        )
        subject: str = payload.get("sub")
        if not subject:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return str(subject)


def get_session_maker() -> async_sessionmaker:
    """Session factory for handlers that fan queries out concurrently."""
    return get_session_factory()
