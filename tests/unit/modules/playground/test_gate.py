"""Tests for run approval and the run state machine."""

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.exceptions.base import InsufficientCreditsError
from src.modules.playground.gate import (
    ExecutionGate,
    InvalidRunTransition,
    RunState,
    RunTicket,
)


class TestRunTicket:
    """Transitions allowed by the run state machine."""

    @pytest.fixture
    def ticket(self):
        return RunTicket(user_id=uuid4(), model="sonnet")

    def test_happy_path(self, ticket):
        for state in (
            RunState.ESTIMATING,
            RunState.APPROVED,
            RunState.EXECUTING,
            RunState.SETTLED,
        ):
            ticket.advance(state)

        assert ticket.history == [
            RunState.IDLE,
            RunState.ESTIMATING,
            RunState.APPROVED,
            RunState.EXECUTING,
            RunState.SETTLED,
        ]

    def test_cannot_execute_without_approval(self, ticket):
        ticket.advance(RunState.ESTIMATING)

        with pytest.raises(InvalidRunTransition):
            ticket.advance(RunState.EXECUTING)

    def test_terminal_states_are_final(self, ticket):
        ticket.advance(RunState.ESTIMATING)
        ticket.advance(RunState.REJECTED)

        with pytest.raises(InvalidRunTransition):
            ticket.advance(RunState.APPROVED)


class TestExecutionGate:
    """Approval against the caller's current balance."""

    @pytest.fixture
    def gate(self, db_session: AsyncSession):
        return ExecutionGate(db_session)

    @pytest.mark.asyncio
    async def test_approves_affordable_run(self, gate, test_user, set_balance):
        await set_balance(test_user, purchased_credits=3)
        ticket = gate.open_ticket(test_user.id, "sonnet")

        approved = await gate.approve(test_user.id, 3, ticket)

        assert approved is ticket
        assert ticket.state == RunState.APPROVED
        assert ticket.estimated_credits == 3
        assert ticket.reservation.available == 3

    @pytest.mark.asyncio
    async def test_rejects_unaffordable_run(self, gate, test_user, set_balance):
        await set_balance(test_user, monthly_credits=10, monthly_credits_used=8)
        ticket = gate.open_ticket(test_user.id, "sonnet")

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await gate.approve(test_user.id, 3, ticket)

        assert ticket.state == RunState.REJECTED
        body = exc_info.value.to_response_dict()
        assert body["error"] == "insufficient_credits"
        assert body["required_credits"] == 3
        assert body["available_credits"] == 2
        assert body["purchase_url"]
