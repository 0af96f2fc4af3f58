from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TicketStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class ViewFilter(str, Enum):
    MY_TICKETS = "My Tickets"
    ALL_TICKETS = "All Tickets"
    STATS = "Stats"


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


class Ticket(BaseModel):
    id: str
    title: str
    description: str
    status: TicketStatus = TicketStatus.OPEN
    owner_id: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict) -> "Ticket":
        return cls(
            id=str(doc["_id"]),
            title=doc.get("title", ""),
            description=doc.get("description", ""),
            status=doc.get("status", TicketStatus.OPEN),
            owner_id=doc.get("owner_id", ""),
            created_at=doc.get("created_at"),
        )


class TicketStats(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    open_percent: float = 0.0
    in_progress_percent: float = 0.0
    resolved_percent: float = 0.0
