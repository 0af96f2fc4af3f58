"""
Unit tests for TicketRepository

Tests:
- Ticket creation and validation
- Status updates and deletes
- Client-side ordering
- Live subscriptions and cancellation
- Error handling (logged, never raised)
"""
import asyncio
from datetime import datetime, timezone

import pytest
from bson import ObjectId

from conftest import wait_for
from commissionguard.identity import Session
from commissionguard.repository import TicketRepository, sort_tickets
from commissionguard.schemas.ticket import Ticket, TicketStatus


@pytest.fixture
def session():
    return Session(uid="user-1", token="token-1")


@pytest.fixture
def repo(tickets_collection):
    return TicketRepository(tickets_collection)


def make_ticket(ticket_id, created_at=None, owner_id="user-1"):
    return Ticket(id=ticket_id, title="t", description="d", owner_id=owner_id, created_at=created_at)


class TestCreateOperation:
    """Test ticket creation"""

    @pytest.mark.asyncio
    async def test_create_ticket(self, repo, tickets_collection, session):
        ticket_id = await repo.create(session, "Refund for order #457", "Double-charged")

        assert ticket_id is not None
        doc = tickets_collection.docs[ObjectId(ticket_id)]
        assert doc["title"] == "Refund for order #457"
        assert doc["description"] == "Double-charged"
        assert doc["status"] == "Open"
        assert doc["owner_id"] == "user-1"
        assert isinstance(doc["created_at"], datetime)

    @pytest.mark.asyncio
    async def test_create_trims_fields(self, repo, tickets_collection, session):
        ticket_id = await repo.create(session, "  Missing payout  ", "\tMarch statement\n")
        doc = tickets_collection.docs[ObjectId(ticket_id)]
        assert doc["title"] == "Missing payout"
        assert doc["description"] == "March statement"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,description", [
        ("", "Double-charged"),
        ("   ", "Double-charged"),
        ("Refund", ""),
        ("Refund", " \n\t "),
        (None, "Double-charged"),
    ])
    async def test_blank_fields_create_nothing(self, repo, tickets_collection, session, title, description):
        assert await repo.create(session, title, description) is None
        assert tickets_collection.docs == {}

    @pytest.mark.asyncio
    async def test_create_without_session(self, repo, tickets_collection):
        assert await repo.create(None, "Refund", "Double-charged") is None
        assert tickets_collection.docs == {}

    @pytest.mark.asyncio
    async def test_create_failure_is_logged(self, repo, tickets_collection, session, caplog):
        tickets_collection.fail = True
        assert await repo.create(session, "Refund", "Double-charged") is None
        assert "Error creating document" in caplog.text


class TestMutations:
    """Test status updates and deletes"""

    @pytest.mark.asyncio
    async def test_update_status(self, repo, tickets_collection, session):
        ticket_id = await repo.create(session, "Refund", "Double-charged")
        await repo.update_status(ticket_id, TicketStatus.IN_PROGRESS)
        assert tickets_collection.docs[ObjectId(ticket_id)]["status"] == "In Progress"

    @pytest.mark.asyncio
    async def test_update_status_accepts_plain_string(self, repo, tickets_collection, session):
        ticket_id = await repo.create(session, "Refund", "Double-charged")
        await repo.update_status(ticket_id, "Resolved")
        assert tickets_collection.docs[ObjectId(ticket_id)]["status"] == "Resolved"

    @pytest.mark.asyncio
    async def test_update_status_ignores_unknown_status(self, repo, tickets_collection, session, caplog):
        ticket_id = await repo.create(session, "Refund", "Double-charged")
        await repo.update_status(ticket_id, "Archived")
        assert tickets_collection.docs[ObjectId(ticket_id)]["status"] == "Open"
        assert "Error updating document" in caplog.text

    @pytest.mark.asyncio
    async def test_update_status_any_owner(self, repo, tickets_collection):
        other = Session(uid="user-2", token="token-2")
        ticket_id = await repo.create(other, "Refund", "Double-charged")
        await repo.update_status(ticket_id, "Resolved")
        assert tickets_collection.docs[ObjectId(ticket_id)]["status"] == "Resolved"

    @pytest.mark.asyncio
    async def test_delete(self, repo, tickets_collection, session):
        ticket_id = await repo.create(session, "Refund", "Double-charged")
        await repo.delete(ticket_id)
        assert tickets_collection.docs == {}

    @pytest.mark.asyncio
    async def test_invalid_id_is_logged(self, repo, caplog):
        await repo.delete("not-an-object-id")
        await repo.update_status("not-an-object-id", "Open")
        assert "Error deleting document" in caplog.text
        assert "Error updating document" in caplog.text

    @pytest.mark.asyncio
    async def test_get_and_list(self, repo, session):
        first = await repo.create(session, "First", "d")
        await repo.create(Session(uid="user-2", token="t"), "Second", "d")

        ticket = await repo.get(first)
        assert ticket.title == "First"
        assert await repo.get(str(ObjectId())) is None

        mine = await repo.list(owner_id="user-1")
        assert [t.title for t in mine] == ["First"]
        everyone = await repo.list()
        assert [t.title for t in everyone] == ["Second", "First"]


class TestOrdering:
    """Test client-side ordering by creation time"""

    def test_newest_first(self):
        older = make_ticket("a", datetime(2025, 1, 1))
        newer = make_ticket("b", datetime(2025, 2, 1))
        assert [t.id for t in sort_tickets([older, newer])] == ["b", "a"]

    def test_undated_last(self):
        undated = make_ticket("pending")
        dated = make_ticket("a", datetime(2025, 1, 1))
        assert [t.id for t in sort_tickets([undated, dated])] == ["a", "pending"]

    def test_stable_for_equal_keys(self):
        when = datetime(2025, 1, 1, tzinfo=timezone.utc)
        tickets = [make_ticket("x", when), make_ticket("y", when), make_ticket("z")]
        assert [t.id for t in sort_tickets(tickets)] == ["x", "y", "z"]

    def test_order_is_non_increasing(self):
        tickets = [make_ticket(str(i), datetime(2025, 1, 1 + (i * 7) % 28)) for i in range(10)]
        tickets.append(make_ticket("none"))
        ordered = sort_tickets(tickets)
        keys = [t.created_at for t in ordered[:-1]]
        assert keys == sorted(keys, reverse=True)
        assert ordered[-1].id == "none"


class TestSubscription:
    """Test live query delivery"""

    @pytest.mark.asyncio
    async def test_initial_snapshot_and_updates(self, repo, session):
        await repo.create(session, "Existing", "d")
        subscription = repo.subscribe()

        first = await asyncio.wait_for(subscription.__anext__(), 1)
        assert [t.title for t in first] == ["Existing"]

        await repo.create(session, "Fresh", "d")
        second = await asyncio.wait_for(subscription.__anext__(), 1)
        assert sorted(t.title for t in second) == ["Existing", "Fresh"]
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_owner_scoped_query(self, repo, session):
        await repo.create(session, "Mine", "d")
        await repo.create(Session(uid="user-2", token="t"), "Theirs", "d")

        subscription = repo.subscribe(owner_id="user-1")
        snapshot = await asyncio.wait_for(subscription.__anext__(), 1)
        assert [t.title for t in snapshot] == ["Mine"]
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_cancel_stops_delivery(self, repo, tickets_collection, session):
        subscription = repo.subscribe()
        await asyncio.wait_for(subscription.__anext__(), 1)

        subscription.cancel()
        await repo.create(session, "After cancel", "d")

        received = [snapshot async for snapshot in subscription]
        assert received == []
        await wait_for(lambda: tickets_collection.streams == [])

    @pytest.mark.asyncio
    async def test_watch_failure_ends_stream(self, repo, tickets_collection, caplog):
        tickets_collection.fail_watch = True
        subscription = repo.subscribe()
        received = [snapshot async for snapshot in subscription]
        assert received == []
        assert "Error listening to tickets" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_document_is_skipped(self, repo, tickets_collection, session, caplog):
        subscription = repo.subscribe()
        await asyncio.wait_for(subscription.__anext__(), 1)

        await tickets_collection.insert_one({"title": "Legacy", "description": "d", "status": "open", "owner_id": "x"})
        after_bad = await asyncio.wait_for(subscription.__anext__(), 1)
        assert after_bad == []
        assert "Skipping malformed ticket document" in caplog.text

        await repo.create(session, "Valid", "d")
        after_good = await asyncio.wait_for(subscription.__anext__(), 1)
        assert [t.title for t in after_good] == ["Valid"]
        assert len(tickets_collection.streams) == 1
        subscription.cancel()


class TestMalformedDocuments:
    """Test reads that meet documents which do not validate"""

    @pytest.mark.asyncio
    async def test_list_skips_malformed(self, repo, tickets_collection, session):
        await tickets_collection.insert_one({"title": "Legacy", "description": "d", "status": "open", "owner_id": "x"})
        await repo.create(session, "Valid", "d")
        assert [t.title for t in await repo.list()] == ["Valid"]

    @pytest.mark.asyncio
    async def test_get_malformed_returns_none(self, repo, tickets_collection):
        result = await tickets_collection.insert_one({"title": "Legacy", "status": "open"})
        assert await repo.get(str(result.inserted_id)) is None
