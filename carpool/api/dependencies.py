"""FastAPI dependency injection helpers."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.domain.errors import Forbidden, Unauthenticated
from carpool.infrastructure.database import async_session_factory
from carpool.infrastructure.models import UserModel
from carpool.infrastructure.repositories import UserRepository

bearer_scheme = HTTPBearer(scheme_name="Member HTTPBearer", auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    """Resolve the bearer token to an active user.

    Tokens are issued by the identity service; this only looks them up.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Not authenticated. Token not provided")
    user = await UserRepository(db).get_by_token(credentials.credentials)
    if user is None:
        raise Unauthenticated("Not authenticated. Invalid or expired token")
    if not user.active:
        raise Forbidden("Account deactivated")
    return user
