# commissionguard/routers/tickets.py
from fastapi import APIRouter, Depends, HTTPException, Query

from commissionguard.dependencies import get_current_session, get_repository
from commissionguard.identity import Session
from commissionguard.repository import TicketRepository
from commissionguard.schemas.ticket import TicketCreate, TicketStatusUpdate, ViewFilter
from commissionguard.stats import compute_stats

router = APIRouter(prefix="/tickets", tags=["Tickets"])


# -----------------------------
# CREATE Ticket
# -----------------------------
@router.post("/", status_code=201)
async def create_ticket(
    data: TicketCreate,
    repository: TicketRepository = Depends(get_repository),
    session: Session = Depends(get_current_session),
):
    ticket_id = await repository.create(session, data.title, data.description)
    if ticket_id is None:
        if data.title.strip() and data.description.strip():
            raise HTTPException(status_code=503, detail="Ticket could not be created")
        raise HTTPException(status_code=422, detail="Title and description are required")
    return {"message": "Ticket created", "ticket_id": ticket_id}


# -----------------------------
# LIST Tickets
# -----------------------------
@router.get("/")
async def list_tickets(
    view: ViewFilter = Query(ViewFilter.MY_TICKETS),
    repository: TicketRepository = Depends(get_repository),
    session: Session = Depends(get_current_session),
):
    owner_id = session.uid if view == ViewFilter.MY_TICKETS else None
    tickets = await repository.list(owner_id=owner_id)
    return [t.model_dump(mode="json") for t in tickets]


# -----------------------------
# Ticket statistics
# -----------------------------
@router.get("/stats")
async def ticket_stats(
    view: ViewFilter = Query(ViewFilter.ALL_TICKETS),
    repository: TicketRepository = Depends(get_repository),
    session: Session = Depends(get_current_session),
):
    owner_id = session.uid if view == ViewFilter.MY_TICKETS else None
    tickets = await repository.list(owner_id=owner_id)
    return compute_stats(tickets).model_dump()


# -----------------------------
# GET Ticket Detail
# -----------------------------
@router.get("/{ticket_id}")
async def get_ticket_detail(
    ticket_id: str,
    repository: TicketRepository = Depends(get_repository),
    session: Session = Depends(get_current_session),
):
    ticket = await repository.get(ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket.model_dump(mode="json")


# -----------------------------
# UPDATE Ticket Status
# -----------------------------
@router.patch("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    data: TicketStatusUpdate,
    repository: TicketRepository = Depends(get_repository),
    session: Session = Depends(get_current_session),
):
    # Any signed-in user may change status, owner or not
    ticket = await repository.get(ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")

    await repository.update_status(ticket_id, data.status)
    return {"message": "Ticket updated"}


# -----------------------------
# DELETE Ticket
# -----------------------------
@router.delete("/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    repository: TicketRepository = Depends(get_repository),
    session: Session = Depends(get_current_session),
):
    ticket = await repository.get(ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")

    # Allow delete only for the ticket owner
    if ticket.owner_id != session.uid:
        raise HTTPException(status_code=403, detail="Ticket owner only")

    await repository.delete(ticket_id)
    return {"message": "Ticket deleted"}
