"""
Identity session manager.

Establishes the session for one application instance, either from a
previously issued token or by anonymous sign-in, and notifies subscribers
whenever the session changes.
"""
import asyncio
from datetime import datetime, timezone
from typing import Optional, Set
from uuid import uuid4

from jose import JWTError
from pydantic import BaseModel

from commissionguard.auth import create_access_token, decode_access_token
from commissionguard.config import Settings
from commissionguard.logger import setup_logger

logger = setup_logger(__name__)

_CLOSED = object()


class Session(BaseModel):
    uid: str
    anonymous: bool = True
    token: str


class SessionStream:
    """Async iterator over session changes; close() ends iteration."""

    def __init__(self, manager: "IdentitySessionManager"):
        self._manager = manager
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _push(self, session: Optional[Session]):
        if not self.closed:
            self._queue.put_nowait(session)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Optional[Session]:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self.closed:
            raise StopAsyncIteration
        return item

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._manager._streams.discard(self)
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()


class IdentitySessionManager:
    """Holds at most one active session per application instance."""

    def __init__(self, settings: Settings, users):
        self.settings = settings
        self.users = users
        self.current: Optional[Session] = None
        self.initialized = False
        self._streams: Set[SessionStream] = set()

    def issue_token(self, uid: str, anonymous: bool = True) -> str:
        return create_access_token({"sub": uid, "anon": anonymous}, self.settings)

    def verify_token(self, token: str) -> Optional[dict]:
        try:
            claims = decode_access_token(token, self.settings)
        except JWTError as e:
            logger.warning(f"Rejected session token: {e}")
            return None
        if not claims.get("sub"):
            logger.warning("Rejected session token: missing subject")
            return None
        return claims

    async def initialize(self, token: Optional[str] = None) -> Optional[Session]:
        """Sign in with ``token`` if given and valid, otherwise anonymously.

        Never raises: a provider failure is logged and reported as no session.
        """
        session = None
        try:
            if token:
                session = self.sign_in_with_token(token)
            if session is None:
                session = await self.sign_in_anonymously()
        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            session = None

        self.initialized = True
        self._set_session(session)
        return session

    def sign_in_with_token(self, token: str) -> Optional[Session]:
        claims = self.verify_token(token)
        if claims is None:
            return None
        return Session(uid=claims["sub"], anonymous=claims.get("anon", True), token=token)

    async def sign_in_anonymously(self) -> Session:
        uid = uuid4().hex
        await self.users.insert_one({
            "_id": uid,
            "anonymous": True,
            "created_at": datetime.now(timezone.utc),
        })
        logger.info(f"Signed in anonymous user {uid}")
        return Session(uid=uid, anonymous=True, token=self.issue_token(uid))

    def sign_out(self):
        self._set_session(None)

    def subscribe(self) -> SessionStream:
        """Deliver the current session now (once initialized) and on every change."""
        stream = SessionStream(self)
        self._streams.add(stream)
        if self.initialized:
            stream._push(self.current)
        return stream

    def _set_session(self, session: Optional[Session]):
        self.current = session
        for stream in list(self._streams):
            stream._push(session)

    def close(self):
        for stream in list(self._streams):
            stream.close()
