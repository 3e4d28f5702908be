"""Metered execution of playground runs.

A run moves through estimate, approval, provider call and settlement.
Settlement is the only place credits are debited, and it happens in one
database transaction together with the session append and the usage row.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.core.constants import SHORT_CUSTOM_PROMPT_LENGTH
from src.api.core.exceptions.base import (
    NotFoundError,
    PRPMException,
    ProviderError,
    UnsafePromptError,
    ValidationError,
)
from src.api.core.messages import MessageCode
from src.api.playground.schemas import (
    AnonymousRunRequest,
    AnonymousRunResult,
    ComparisonSide,
    CustomPromptRunRequest,
    CustomPromptRunResult,
    PlaygroundCompareRequest,
    PlaygroundCompareResult,
    PlaygroundEstimateRequest,
    PlaygroundEstimateResult,
    PlaygroundRunRequest,
    PlaygroundRunResult,
    PromptIssue,
)
from src.core.base import BaseService
from src.database.models import (
    Package,
    PackageVersion,
    PlaygroundSession,
    PlaygroundUsage,
    User,
)
from src.modules.credits.estimator import (
    credits_for_tokens,
    estimate_api_cost_usd,
    estimate_credits,
    estimate_tokens,
)
from src.modules.credits.ledger import CreditLedgerService
from src.modules.playground.anonymous import AnonymousIdentity, AnonymousRunGate
from src.modules.playground.gate import ExecutionGate, RunState, RunTicket
from src.modules.playground.prompt_safety import (
    sanitize_user_input,
    validate_custom_prompt,
)
from src.modules.playground.providers import CompletionResult, ModelClient
from src.modules.playground.sessions import PlaygroundSessionService
from src.utils.dates import utcnow
from src.utils.settings.playground import PlaygroundSettings


@dataclass
class RunPlan:
    """Everything needed to execute and settle one metered run."""

    model: str
    system_prompt: str
    input: str
    session: PlaygroundSession | None
    package: Package | None = None
    package_version: str | None = None
    custom_prompt: bool = False
    comparison_mode: bool = False


def custom_prompt_warnings(
    prompt: str, issues: list[PromptIssue] | None = None
) -> list[str]:
    """Non-blocking notes for a prompt that passed the safety check."""
    warnings = []
    if len(prompt) < SHORT_CUSTOM_PROMPT_LENGTH:
        warnings.append("Prompt is very short and may produce generic responses.")
    warnings.extend(issue.description for issue in issues or [])
    return warnings


class PlaygroundService(BaseService):
    """Runs prompt packages against model providers and settles their cost."""

    def __init__(
        self,
        db: AsyncSession,
        model_client: ModelClient,
        settings: PlaygroundSettings | None = None,
    ):
        super().__init__(db, settings)
        self.model_client = model_client
        self.ledger = CreditLedgerService(db, self.settings)
        self.gate = ExecutionGate(db, self.ledger)
        self.sessions = PlaygroundSessionService(db)

    async def run(
        self,
        user_id: UUID,
        request: PlaygroundRunRequest,
        comparison_mode: bool = False,
    ) -> PlaygroundRunResult:
        """Execute a package run and debit its cost.

        Raises:
            NotFoundError: unknown package, version or session.
            ValidationError: request too large for the model.
            InsufficientCreditsError: balance below the estimate (402).
            ProviderError: provider call failed; nothing is charged.
        """
        plan = await self._plan_package_run(user_id, request)
        plan.comparison_mode = comparison_mode
        return await self._execute(
            user_id,
            plan,
            max_tokens=self.settings.RUN_MAX_OUTPUT_TOKENS,
            timeout=self.settings.RUN_TIMEOUT_SECONDS,
        )

    async def estimate(
        self, user_id: UUID, request: PlaygroundEstimateRequest
    ) -> PlaygroundEstimateResult:
        plan = await self._plan_package_run(user_id, request)
        history = plan.session.conversation if plan.session else []
        estimated_credits = estimate_credits(
            plan.model,
            plan.input,
            plan.system_prompt,
            history,
            settings=self.settings,
        )
        current_balance = await self.ledger.get_available(user_id)
        return PlaygroundEstimateResult(
            estimated_credits=estimated_credits,
            estimated_tokens=estimate_tokens(
                len(plan.system_prompt), len(plan.input), history, self.settings
            ),
            model=plan.model,
            can_afford=current_balance >= estimated_credits,
            current_balance=current_balance,
        )

    async def run_custom_prompt(
        self, user: User, request: CustomPromptRunRequest
    ) -> CustomPromptRunResult:
        """Run an author-supplied prompt under the stricter sandbox limits.

        Raises:
            PRPMException: 403 for users who are not verified authors.
            UnsafePromptError: the prompt failed the safety check (400).
        """
        if not user.verified_author:
            raise PRPMException(
                MessageCode.VERIFIED_AUTHOR_REQUIRED, status.HTTP_403_FORBIDDEN
            )

        validation = validate_custom_prompt(request.custom_prompt)
        self.logger.info(
            "Custom prompt validated",
            user_id=str(user.id),
            prompt_length=len(request.custom_prompt),
            safe=validation.safe,
            score=validation.score,
        )
        if not validation.safe:
            self.logger.warning(
                "Unsafe custom prompt rejected",
                user_id=str(user.id),
                score=validation.score,
                issues=[issue.type for issue in validation.issues],
            )
            raise UnsafePromptError(validation.model_dump(mode="json"))

        user_input = sanitize_user_input(request.input)
        if not user_input:
            raise ValidationError(message="Input is required")

        session = None
        if request.session_id:
            session = await self.sessions.get_session(user.id, request.session_id)
            if not session.is_custom_prompt:
                raise ValidationError(
                    message="Session was not started in custom prompt mode"
                )
            if session.run_count >= self.settings.CUSTOM_PROMPT_MAX_TURNS:
                raise ValidationError(
                    message=(
                        "Custom prompt sessions are limited to "
                        f"{self.settings.CUSTOM_PROMPT_MAX_TURNS} turns"
                    ),
                    message_code=MessageCode.CONVERSATION_LIMIT_REACHED,
                )

        plan = RunPlan(
            model=request.model,
            system_prompt=request.custom_prompt,
            input=user_input,
            session=session,
            custom_prompt=True,
        )
        result = await self._execute(
            user.id,
            plan,
            max_tokens=self.settings.CUSTOM_PROMPT_MAX_OUTPUT_TOKENS,
            timeout=self.settings.CUSTOM_PROMPT_TIMEOUT_SECONDS,
        )
        return CustomPromptRunResult(
            **result.model_dump(),
            warnings=custom_prompt_warnings(request.custom_prompt, validation.issues),
            validation_score=validation.score,
        )

    async def compare(
        self,
        user_id: UUID,
        request: PlaygroundCompareRequest,
        session_factory: async_sessionmaker,
    ) -> PlaygroundCompareResult:
        """Run two sides concurrently, each settled on its own session.

        Without ``package_b_id`` side B is package A run with no prompt.
        The combined estimate must be affordable before either side starts.
        """
        baseline = request.package_b_id is None
        sides = [
            PlaygroundRunRequest(
                package_id=request.package_a_id,
                input=request.input,
                model=request.model,
            ),
            PlaygroundRunRequest(
                package_id=request.package_b_id or request.package_a_id,
                input=request.input,
                model=request.model,
                use_no_prompt=baseline,
            ),
        ]

        combined = 0
        for side in sides:
            plan = await self._plan_package_run(user_id, side)
            combined += estimate_credits(
                plan.model, plan.input, plan.system_prompt, settings=self.settings
            )
        await self.gate.approve(user_id, combined)

        async def run_side(side: PlaygroundRunRequest) -> ComparisonSide:
            async with session_factory() as db:
                service = PlaygroundService(db, self.model_client, self.settings)
                try:
                    result = await service.run(user_id, side, comparison_mode=True)
                except PRPMException as e:
                    return ComparisonSide(
                        package_id=side.package_id,
                        use_no_prompt=side.use_no_prompt,
                        status="failed",
                        error=e.to_response_dict(),
                    )
                return ComparisonSide(
                    package_id=side.package_id,
                    use_no_prompt=side.use_no_prompt,
                    status="succeeded",
                    result=result,
                )

        side_a, side_b = await asyncio.gather(*(run_side(side) for side in sides))
        total = sum(
            side.result.credits_spent for side in (side_a, side_b) if side.result
        )

        self.logger.info(
            "Comparison run completed",
            user_id=str(user_id),
            baseline=baseline,
            total_credits_spent=total,
        )
        return PlaygroundCompareResult(
            a=side_a,
            b=side_b,
            total_credits_spent=total,
            credits_remaining=await self.ledger.get_available(user_id),
        )

    async def run_anonymous(
        self,
        identity: AnonymousIdentity,
        request: AnonymousRunRequest,
    ) -> AnonymousRunResult:
        """Single unmetered run on the cheapest model.

        The monthly run is taken before the provider call and given back if
        the provider fails.

        Raises:
            RateLimitError: the fingerprint already used its monthly run.
        """
        anonymous_gate = AnonymousRunGate(self.db, self.settings)
        await anonymous_gate.check(identity)

        model = anonymous_gate.resolve_model(request.model)
        package, version = await self._load_package(request.package_id)
        # Size check only; anonymous runs are not charged
        estimate_credits(model, request.input, version.prompt, settings=self.settings)

        await anonymous_gate.record(identity, package.id, model)
        try:
            completion = await self.model_client.complete(
                model=model,
                system_prompt=version.prompt,
                messages=[{"role": "user", "content": request.input}],
                max_tokens=self.settings.RUN_MAX_OUTPUT_TOKENS,
                timeout=self.settings.RUN_TIMEOUT_SECONDS,
            )
        except ProviderError:
            await anonymous_gate.release(identity)
            raise

        return AnonymousRunResult(
            response=completion.text,
            model=model,
            tokens_used=completion.tokens_used,
        )

    async def _load_package(
        self, package_id: UUID, version: str | None = None
    ) -> tuple[Package, PackageVersion]:
        package = await self.db.get(Package, package_id)
        if package is None:
            raise NotFoundError(MessageCode.PACKAGE_NOT_FOUND, resource="package")

        stmt = select(PackageVersion).where(PackageVersion.package_id == package_id)
        version = version or package.latest_version
        if version:
            stmt = stmt.where(PackageVersion.version == version)
        else:
            stmt = stmt.order_by(PackageVersion.created_at.desc()).limit(1)

        package_version = (await self.db.execute(stmt)).scalars().first()
        if package_version is None:
            raise NotFoundError(
                MessageCode.PACKAGE_NOT_FOUND, resource="package_version"
            )
        return package, package_version

    async def _plan_package_run(
        self,
        user_id: UUID,
        request: PlaygroundRunRequest | PlaygroundEstimateRequest,
    ) -> RunPlan:
        package, version = await self._load_package(
            request.package_id, request.package_version
        )
        session = None
        if request.session_id:
            session = await self.sessions.get_session(user_id, request.session_id)
            if session.package_id != package.id:
                raise ValidationError(
                    message="Session belongs to a different package"
                )

        return RunPlan(
            model=request.model,
            system_prompt="" if request.use_no_prompt else version.prompt,
            input=request.input,
            session=session,
            package=package,
            package_version=version.version,
        )

    async def _execute(
        self,
        user_id: UUID,
        plan: RunPlan,
        max_tokens: int,
        timeout: float,
    ) -> PlaygroundRunResult:
        history = list(plan.session.conversation) if plan.session else []
        ticket = self.gate.open_ticket(user_id, plan.model)
        estimated = estimate_credits(
            plan.model,
            plan.input,
            plan.system_prompt,
            history,
            custom_prompt=plan.custom_prompt,
            settings=self.settings,
        )
        await self.gate.approve(user_id, estimated, ticket)

        ticket.advance(RunState.EXECUTING)
        messages = [
            {"role": message["role"], "content": message["content"]}
            for message in history
        ]
        messages.append({"role": "user", "content": plan.input})

        started = time.perf_counter()
        try:
            completion = await self.model_client.complete(
                model=plan.model,
                system_prompt=plan.system_prompt,
                messages=messages,
                max_tokens=max_tokens,
                timeout=timeout,
            )
        except ProviderError as e:
            ticket.advance(RunState.FAILED)
            self.logger.error(
                "Playground run failed, nothing charged",
                user_id=str(user_id),
                model=plan.model,
                provider=e.provider,
                reason=e.reason,
            )
            raise
        duration_ms = int((time.perf_counter() - started) * 1000)

        return await self._settle(ticket, plan, completion, duration_ms)

    async def _settle(
        self,
        ticket: RunTicket,
        plan: RunPlan,
        completion: CompletionResult,
        duration_ms: int,
    ) -> PlaygroundRunResult:
        """Debit, append the exchange and record usage in one transaction."""
        user_id = ticket.user_id
        actual = max(
            1,
            min(
                ticket.estimated_credits,
                credits_for_tokens(
                    plan.model,
                    completion.tokens_used,
                    custom_prompt=plan.custom_prompt,
                    settings=self.settings,
                ),
            ),
        )
        session = plan.session
        session_id = session.id if session else uuid.uuid4()
        now = utcnow()

        try:
            transaction = await self.ledger.debit(
                user_id,
                actual,
                session_id=session_id,
                description=f"Playground run ({plan.model})",
                metadata={
                    "model": plan.model,
                    "package_id": str(plan.package.id) if plan.package else None,
                    "estimated_credits": ticket.estimated_credits,
                    "tokens_used": completion.tokens_used,
                    "comparison_mode": plan.comparison_mode,
                    "custom_prompt": plan.custom_prompt,
                },
            )

            if session is None:
                session = PlaygroundSession(
                    id=session_id,
                    user_id=user_id,
                    package_id=plan.package.id if plan.package else None,
                    package_version=plan.package_version,
                    package_name=plan.package.name if plan.package else None,
                    conversation=[],
                    model=plan.model,
                    is_custom_prompt=plan.custom_prompt,
                )
                self.db.add(session)

            # Reassign so the JSON column is flagged dirty
            session.conversation = [
                *session.conversation,
                {
                    "role": "user",
                    "content": plan.input,
                    "timestamp": now.isoformat(),
                },
                {
                    "role": "assistant",
                    "content": completion.text,
                    "timestamp": utcnow().isoformat(),
                    "tokens": completion.tokens_used,
                },
            ]
            session.credits_spent = (session.credits_spent or 0) + actual
            session.run_count = (session.run_count or 0) + 1
            session.total_tokens = (session.total_tokens or 0) + completion.tokens_used
            session.total_duration_ms = (session.total_duration_ms or 0) + duration_ms
            session.model = plan.model
            session.last_run_at = now

            self.db.add(
                PlaygroundUsage(
                    user_id=user_id,
                    package_id=plan.package.id if plan.package else None,
                    session_id=session_id,
                    model=plan.model,
                    tokens_used=completion.tokens_used,
                    duration_ms=duration_ms,
                    credits_spent=actual,
                    estimated_credits=ticket.estimated_credits,
                    estimated_api_cost_usd=estimate_api_cost_usd(
                        plan.model, completion.input_tokens, completion.output_tokens
                    ),
                    input_length=len(plan.input),
                    output_length=len(completion.text),
                    comparison_mode=plan.comparison_mode,
                    is_custom_prompt=plan.custom_prompt,
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            ticket.advance(RunState.FAILED)
            raise

        ticket.advance(RunState.SETTLED)
        self.logger.info(
            "Playground run settled",
            user_id=str(user_id),
            session_id=str(session_id),
            model=plan.model,
            credits_spent=actual,
            estimated_credits=ticket.estimated_credits,
            tokens_used=completion.tokens_used,
        )
        return PlaygroundRunResult(
            session_id=session_id,
            response=completion.text,
            conversation=session.conversation,
            credits_spent=actual,
            credits_remaining=transaction.balance_after,
            tokens_used=completion.tokens_used,
            duration_ms=duration_ms,
            model=plan.model,
        )
