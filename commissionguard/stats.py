from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from commissionguard.schemas.ticket import Ticket, TicketStats, TicketStatus


def _percent(count: int, total: int) -> float:
    if total == 0:
        return 0.0
    # exact halves round up
    share = Decimal(count * 100) / Decimal(total)
    return float(share.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def compute_stats(tickets: Iterable[Ticket]) -> TicketStats:
    """Status counts and shares over the currently visible tickets.

    Percentages are rounded independently, so they need not sum to 100.0.
    """
    tickets = list(tickets)
    total = len(tickets)
    open_ = sum(1 for t in tickets if t.status == TicketStatus.OPEN)
    in_progress = sum(1 for t in tickets if t.status == TicketStatus.IN_PROGRESS)
    resolved = sum(1 for t in tickets if t.status == TicketStatus.RESOLVED)

    return TicketStats(
        total=total,
        open=open_,
        in_progress=in_progress,
        resolved=resolved,
        open_percent=_percent(open_, total),
        in_progress_percent=_percent(in_progress, total),
        resolved_percent=_percent(resolved, total),
    )
