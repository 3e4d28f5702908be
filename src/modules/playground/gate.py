"""Pre-flight approval of metered playground runs."""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from src.api.core.exceptions.base import InsufficientCreditsError
from src.core.base import BaseService
from src.modules.credits.ledger import CreditLedgerService, Reservation


class RunState(str, Enum):
    IDLE = "idle"
    ESTIMATING = "estimating"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTING = "executing"
    SETTLED = "settled"
    FAILED = "failed"


_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.IDLE: {RunState.ESTIMATING},
    RunState.ESTIMATING: {RunState.APPROVED, RunState.REJECTED},
    RunState.APPROVED: {RunState.EXECUTING},
    RunState.EXECUTING: {RunState.SETTLED, RunState.FAILED},
    RunState.REJECTED: set(),
    RunState.SETTLED: set(),
    RunState.FAILED: set(),
}


class InvalidRunTransition(RuntimeError):
    pass


@dataclass
class RunTicket:
    """Tracks one run from estimate to settlement."""

    user_id: UUID
    model: str
    estimated_credits: int = 0
    state: RunState = RunState.IDLE
    reservation: Reservation | None = None
    history: list[RunState] = field(default_factory=lambda: [RunState.IDLE])

    def advance(self, state: RunState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidRunTransition(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


class ExecutionGate(BaseService):
    """Refuses runs the caller cannot currently afford."""

    def __init__(self, db, ledger: CreditLedgerService | None = None):
        super().__init__(db)
        self.ledger = ledger or CreditLedgerService(db)

    def open_ticket(self, user_id: UUID, model: str) -> RunTicket:
        ticket = RunTicket(user_id=user_id, model=model)
        ticket.advance(RunState.ESTIMATING)
        return ticket

    async def approve(
        self,
        user_id: UUID,
        estimated_credits: int,
        ticket: RunTicket | None = None,
    ) -> RunTicket:
        """Move an estimating ticket to Approved or Rejected.

        A ticket is opened when none is passed in.

        Raises:
            InsufficientCreditsError: the ticket is left in Rejected.
        """
        ticket = ticket or self.open_ticket(user_id, model="")
        ticket.estimated_credits = estimated_credits
        try:
            ticket.reservation = await self.ledger.reserve(
                ticket.user_id, estimated_credits
            )
        except InsufficientCreditsError:
            ticket.advance(RunState.REJECTED)
            self.logger.warning(
                "Run rejected",
                user_id=str(ticket.user_id),
                model=ticket.model,
                estimated_credits=estimated_credits,
            )
            raise

        ticket.advance(RunState.APPROVED)
        return ticket
