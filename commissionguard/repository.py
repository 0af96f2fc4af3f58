# commissionguard/repository.py
import asyncio
from datetime import timezone
from typing import Iterable, List, Optional

from bson import ObjectId
from pydantic import ValidationError

from commissionguard.identity import Session
from commissionguard.logger import setup_logger
from commissionguard.schemas.ticket import Ticket, TicketStatus

logger = setup_logger(__name__)

_END = object()


def _sort_key(ticket: Ticket) -> float:
    created = ticket.created_at
    if created is None:
        return 0
    if created.tzinfo is None:
        # the driver hands back naive UTC datetimes
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


def sort_tickets(tickets: Iterable[Ticket]) -> List[Ticket]:
    """Newest first; tickets without a resolved timestamp go last. Stable."""
    return sorted(tickets, key=_sort_key, reverse=True)


def to_tickets(docs) -> List[Ticket]:
    """Materialize documents, skipping any that do not validate."""
    tickets = []
    for doc in docs:
        try:
            tickets.append(Ticket.from_document(doc))
        except ValidationError as e:
            logger.warning(f"Skipping malformed ticket document {doc.get('_id')}: {e}")
    return tickets


class TicketSubscription:
    """Live query over the tickets collection, consumed as an async stream.

    Every remote change re-runs the query and delivers the full result list.
    After cancel() nothing more is delivered.
    """

    def __init__(self, collection, query: dict):
        self.collection = collection
        self.query = query
        self.cancelled = False
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "TicketSubscription":
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    async def _run(self):
        try:
            async with self.collection.watch() as stream:
                await self._deliver()
                async for _change in stream:
                    await self._deliver()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error listening to tickets: {e}")
        finally:
            self._queue.put_nowait(_END)

    async def _deliver(self):
        docs = await self.collection.find(self.query).to_list(length=None)
        if self.cancelled:
            return
        self._queue.put_nowait(to_tickets(docs))

    def cancel(self):
        if self.cancelled:
            return
        self.cancelled = True
        if self._task is not None:
            self._task.cancel()
        # drop anything already queued so a late reader sees only the end marker
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self) -> List[Ticket]:
        if self.cancelled and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END or self.cancelled:
            raise StopAsyncIteration
        return item

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.cancel()


class TicketRepository:
    """Operations on the tickets collection.

    Mutations are fire-and-forget: failures are logged, never raised or retried.
    """

    def __init__(self, collection):
        self.collection = collection

    def subscribe(self, owner_id: Optional[str] = None) -> TicketSubscription:
        query = {"owner_id": owner_id} if owner_id else {}
        return TicketSubscription(self.collection, query).start()

    async def list(self, owner_id: Optional[str] = None) -> List[Ticket]:
        query = {"owner_id": owner_id} if owner_id else {}
        try:
            docs = await self.collection.find(query).to_list(length=None)
        except Exception as e:
            logger.error(f"Error fetching tickets: {e}")
            return []
        return sort_tickets(to_tickets(docs))

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        try:
            doc = await self.collection.find_one({"_id": ObjectId(ticket_id)})
        except Exception as e:
            logger.error(f"Error fetching ticket {ticket_id}: {e}")
            return None
        tickets = to_tickets([doc]) if doc else []
        return tickets[0] if tickets else None

    async def create(self, session: Optional[Session], title: str, description: str) -> Optional[str]:
        title = (title or "").strip()
        description = (description or "").strip()
        if not title or not description:
            logger.warning("Ticket not created: title and description are required")
            return None
        if session is None:
            logger.warning("Ticket not created: no active session")
            return None

        try:
            # $currentDate makes the creation time server-assigned
            result = await self.collection.update_one(
                {"_id": ObjectId()},
                {
                    "$setOnInsert": {
                        "title": title,
                        "description": description,
                        "status": TicketStatus.OPEN.value,
                        "owner_id": session.uid,
                    },
                    "$currentDate": {"created_at": True},
                },
                upsert=True,
            )
        except Exception as e:
            logger.error(f"Error creating document: {e}")
            return None

        ticket_id = str(result.upserted_id)
        logger.info(f"Ticket {ticket_id} created by {session.uid}")
        return ticket_id

    async def update_status(self, ticket_id: str, status) -> None:
        try:
            status = TicketStatus(status)
            await self.collection.update_one(
                {"_id": ObjectId(ticket_id)},
                {"$set": {"status": status.value}},
            )
        except Exception as e:
            logger.error(f"Error updating document: {e}")

    async def delete(self, ticket_id: str) -> None:
        try:
            await self.collection.delete_one({"_id": ObjectId(ticket_id)})
        except Exception as e:
            logger.error(f"Error deleting document: {e}")
