"""
Ticket board state controller.

One board per application instance. It holds the session, the active view,
the visible ticket list, the creation form and the pending deletion, and
keeps exactly one live subscription open for the current session and view.

Initialization runs ``loading -> subscribed -> ready``; a view or session
change re-enters ``subscribed`` until the next snapshot arrives.
"""
import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from commissionguard.identity import IdentitySessionManager, Session
from commissionguard.logger import setup_logger
from commissionguard.repository import TicketRepository, TicketSubscription, sort_tickets
from commissionguard.schemas.ticket import Ticket, TicketStats, ViewFilter
from commissionguard.stats import compute_stats

logger = setup_logger(__name__)

Listener = Callable[["TicketBoard"], Awaitable[None]]


class BoardPhase(str, Enum):
    LOADING = "loading"
    SUBSCRIBED = "subscribed"
    READY = "ready"


class TicketBoard:
    def __init__(self, identity: IdentitySessionManager, repository: TicketRepository):
        self.identity = identity
        self.repository = repository

        self.session: Optional[Session] = None
        self.view = ViewFilter.MY_TICKETS
        self.tickets: List[Ticket] = []
        self.title = ""
        self.description = ""
        self.pending_delete_id: Optional[str] = None
        self.phase = BoardPhase.LOADING

        self._subscription: Optional[TicketSubscription] = None
        self._pump: Optional[asyncio.Task] = None
        self._session_task: Optional[asyncio.Task] = None
        self._session_stream = None
        self._listeners: List[Listener] = []

    # -----------------------------
    # Change notification
    # -----------------------------
    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    async def _notify(self):
        for listener in list(self._listeners):
            try:
                await listener(self)
            except Exception as e:
                logger.error(f"Board listener failed: {e}")

    @property
    def stats(self) -> TicketStats:
        return compute_stats(self.tickets)

    # -----------------------------
    # Session and subscription lifecycle
    # -----------------------------
    def start(self):
        """Follow the identity manager's session stream."""
        self._session_stream = self.identity.subscribe()
        self._session_task = asyncio.get_running_loop().create_task(self._follow_sessions())

    async def _follow_sessions(self):
        async for session in self._session_stream:
            await self.set_session(session)

    async def set_session(self, session: Optional[Session]):
        self.session = session
        if session is None:
            self._teardown()
            self.tickets = []
            self.pending_delete_id = None
            self.phase = BoardPhase.LOADING
        else:
            self._resubscribe()
        await self._notify()

    async def set_view(self, view):
        view = ViewFilter(view)
        if view == self.view:
            return
        self.view = view
        if self.session is not None:
            self._resubscribe()
        await self._notify()

    def _resubscribe(self):
        # the previous stream is gone before the next one opens
        self._teardown()
        owner_id = self.session.uid if self.view == ViewFilter.MY_TICKETS else None
        self._subscription = self.repository.subscribe(owner_id=owner_id)
        self.phase = BoardPhase.SUBSCRIBED
        self._pump = asyncio.get_running_loop().create_task(self._consume(self._subscription))

    def _teardown(self):
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._pump is not None and self._pump is not asyncio.current_task():
            self._pump.cancel()
        self._pump = None

    async def _consume(self, subscription: TicketSubscription):
        async for tickets in subscription:
            if subscription is not self._subscription:
                break
            await self.apply_snapshot(tickets)

    async def apply_snapshot(self, tickets: List[Ticket]):
        self.tickets = sort_tickets(tickets)
        self.phase = BoardPhase.READY
        await self._notify()

    # -----------------------------
    # Form and mutations
    # -----------------------------
    async def update_form(self, title: Optional[str] = None, description: Optional[str] = None):
        if title is not None:
            self.title = title
        if description is not None:
            self.description = description
        await self._notify()

    async def submit(self) -> Optional[str]:
        ticket_id = await self.repository.create(self.session, self.title, self.description)
        if ticket_id is not None:
            self.title = ""
            self.description = ""
            await self._notify()
        return ticket_id

    async def change_status(self, ticket_id: str, status):
        await self.repository.update_status(ticket_id, status)

    def owns(self, ticket_id: str) -> bool:
        if self.session is None:
            return False
        return any(t.id == ticket_id and t.owner_id == self.session.uid for t in self.tickets)

    async def request_delete(self, ticket_id: str):
        if not self.owns(ticket_id):
            logger.warning(f"Delete of ticket {ticket_id} ignored: not owned by this session")
            return
        self.pending_delete_id = ticket_id
        await self._notify()

    async def confirm_delete(self):
        ticket_id = self.pending_delete_id
        if ticket_id is None:
            return
        self.pending_delete_id = None
        await self.repository.delete(ticket_id)
        await self._notify()

    async def cancel_delete(self):
        if self.pending_delete_id is None:
            return
        self.pending_delete_id = None
        await self._notify()

    def close(self):
        self._teardown()
        if self._session_stream is not None:
            self._session_stream.close()
        if self._session_task is not None and self._session_task is not asyncio.current_task():
            self._session_task.cancel()
        self._listeners.clear()
