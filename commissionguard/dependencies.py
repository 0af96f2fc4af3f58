# commissionguard/dependencies.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from commissionguard.identity import IdentitySessionManager, Session
from commissionguard.repository import TicketRepository

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/anonymous", auto_error=False)


def ensure_ready(app):
    if app.state.startup_error:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=app.state.startup_error)


def new_identity(app) -> IdentitySessionManager:
    """A fresh identity manager for one application instance."""
    ensure_ready(app)
    return IdentitySessionManager(app.state.settings, app.state.database.users)


async def get_repository(request: Request) -> TicketRepository:
    ensure_ready(request.app)
    return request.app.state.repository


async def get_current_session(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> Session:
    identity = new_identity(request.app)
    token = token or request.cookies.get(request.app.state.settings.session_cookie)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    session = identity.sign_in_with_token(token)
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return session
