# Overview: Service-layer operations for lifecycle; explicit state machines for plots and requests.

"""
Plot and request lifecycles.

PLOT STATE MACHINE:
    available -> assigned -> paid -> used_in_deal
                 assigned ---------> used_in_deal
    available | assigned | paid -> sold

    used_in_deal and sold are terminal.

REQUEST STATE MACHINE:
    pending -> approved
    pending -> rejected

INVENTORY UNIT STATUS is not a state machine of its own. It is derived from
its plots every time a plot changes (derive_unit_status).
"""

from __future__ import annotations

from typing import Iterable

from ..errors import ConflictError


PLOT_AVAILABLE = "available"
PLOT_ASSIGNED = "assigned"
PLOT_PAID = "paid"
PLOT_USED_IN_DEAL = "used_in_deal"
PLOT_SOLD = "sold"

VALID_PLOT_STATUSES = {PLOT_AVAILABLE, PLOT_ASSIGNED, PLOT_PAID, PLOT_USED_IN_DEAL, PLOT_SOLD}

PLOT_TRANSITIONS = {
    (PLOT_AVAILABLE, PLOT_ASSIGNED),
    (PLOT_ASSIGNED, PLOT_PAID),
    (PLOT_ASSIGNED, PLOT_USED_IN_DEAL),
    (PLOT_PAID, PLOT_USED_IN_DEAL),
    (PLOT_AVAILABLE, PLOT_SOLD),
    (PLOT_ASSIGNED, PLOT_SOLD),
    (PLOT_PAID, PLOT_SOLD),
}

# Plots held by a salesperson (payable, consumable by a deal)
HELD_PLOT_STATUSES = {PLOT_ASSIGNED, PLOT_PAID}
# Plots that can receive investor payments
PAYABLE_PLOT_STATUSES = {PLOT_ASSIGNED, PLOT_PAID, PLOT_USED_IN_DEAL}

UNIT_AVAILABLE = "available"
UNIT_ASSIGNED = "assigned"
UNIT_PAID = "paid"
UNIT_SOLD = "sold"

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"

REQUEST_TRANSITIONS = {
    (REQUEST_PENDING, REQUEST_APPROVED),
    (REQUEST_PENDING, REQUEST_REJECTED),
}


def can_transition_plot(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in PLOT_TRANSITIONS


def transition_plot(plot, to_status: str) -> None:
    """
    Move a plot to `to_status` or raise ConflictError.

    Same-state transitions are rejected too: callers that want idempotency
    check the current status first.
    """
    if to_status not in VALID_PLOT_STATUSES:
        raise ConflictError(f"Invalid plot status '{to_status}'")
    if not can_transition_plot(plot.status, to_status):
        raise ConflictError(
            f"Plot {plot.plot_number} cannot move from {plot.status} to {to_status}",
            plot_id=plot.id,
            plot_number=plot.plot_number,
            current_status=plot.status,
        )
    plot.status = to_status


def transition_request(request, to_status: str) -> None:
    if (request.status, to_status) not in REQUEST_TRANSITIONS:
        raise ConflictError(
            f"Request is already {request.status}",
            request_id=request.id,
            current_status=request.status,
        )
    request.status = to_status


def derive_unit_status(plot_statuses: Iterable[str]) -> str:
    """
    Unit status from the statuses of its plots.

    - no plots, or any plot available -> available
    - every plot used_in_deal or sold  -> sold
    - every plot paid/used_in_deal/sold -> paid
    - otherwise                          -> assigned
    """
    statuses = list(plot_statuses)
    if not statuses or PLOT_AVAILABLE in statuses:
        return UNIT_AVAILABLE
    if all(s in (PLOT_USED_IN_DEAL, PLOT_SOLD) for s in statuses):
        return UNIT_SOLD
    if all(s in (PLOT_PAID, PLOT_USED_IN_DEAL, PLOT_SOLD) for s in statuses):
        return UNIT_PAID
    return UNIT_ASSIGNED
