"""
Cook Journal Backend — Request Dependencies
=============================================

What:  FastAPI dependencies that resolve the session cookie to a User.
How:   get_current_user_optional never fails (anonymous → None);
       get_current_user raises AuthError (401) when no session is bound.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cookjournal.config import settings
from cookjournal.database import get_db_session
from cookjournal.exceptions import AuthError
from cookjournal.models import User
from cookjournal.services.auth_service import auth_service


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    return await auth_service.resolve_session(db, session_token(request))


async def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    if user is None:
        raise AuthError()
    return user
