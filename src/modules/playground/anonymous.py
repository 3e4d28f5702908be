"""Monthly single-use quota for unauthenticated playground runs."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from src.api.core.exceptions.base import RateLimitError
from src.api.core.messages import MessageCode
from src.core.base import BaseService
from src.database.models import AnonymousPlaygroundUsage
from src.modules.credits.estimator import cheapest_model
from src.utils.dates import month_key, utcnow
from src.utils.hashing import HashingService

SIGNUP_CALL_TO_ACTION = "Sign up for free to get 5 playground credits."


@dataclass(frozen=True)
class AnonymousIdentity:
    fingerprint_hash: str
    ip_subnet: str
    user_agent: str | None
    month: str

    @classmethod
    def from_client(
        cls,
        ip_address: str,
        user_agent: str | None,
        accept_language: str | None,
        now: datetime | None = None,
    ) -> "AnonymousIdentity":
        subnet = HashingService.ip_subnet(ip_address)
        return cls(
            fingerprint_hash=HashingService.fingerprint(
                subnet, user_agent, accept_language
            ),
            ip_subnet=subnet,
            user_agent=user_agent,
            month=month_key(now),
        )


class AnonymousRunGate(BaseService):
    """Allows each anonymous fingerprint a fixed number of runs per month.

    Anonymous runs are never metered against a ledger; the only cost control
    is this quota plus the forced cheapest model.
    """

    def resolve_model(self, requested: str | None = None) -> str:
        """Anonymous runs always use the cheapest model."""
        model = cheapest_model()
        if requested and requested != model:
            self.logger.info(
                "Anonymous run downgraded to cheapest model",
                requested=requested,
                model=model,
            )
        return model

    def _scoped(self, identity: AnonymousIdentity) -> tuple:
        return (
            AnonymousPlaygroundUsage.fingerprint_hash == identity.fingerprint_hash,
            AnonymousPlaygroundUsage.current_month == identity.month,
        )

    async def _get_usage(
        self, identity: AnonymousIdentity
    ) -> AnonymousPlaygroundUsage | None:
        stmt = select(AnonymousPlaygroundUsage).where(*self._scoped(identity))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    def _limit_exceeded(self, identity: AnonymousIdentity) -> RateLimitError:
        self.logger.warning(
            "Anonymous playground limit reached",
            ip_subnet=identity.ip_subnet,
            current_month=identity.month,
        )
        return RateLimitError(
            MessageCode.LIMIT_EXCEEDED,
            details={
                "current_month": identity.month,
                "limit": self.settings.ANONYMOUS_RUNS_PER_MONTH,
                "call_to_action": SIGNUP_CALL_TO_ACTION,
            },
        )

    async def check(self, identity: AnonymousIdentity) -> None:
        """
        Raises:
            RateLimitError: once the fingerprint has used its monthly runs.
        """
        usage = await self._get_usage(identity)
        if usage and usage.usage_count >= self.settings.ANONYMOUS_RUNS_PER_MONTH:
            raise self._limit_exceeded(identity)

    async def record(
        self,
        identity: AnonymousIdentity,
        package_id: UUID | None,
        model: str,
    ) -> None:
        """Take one of the fingerprint's monthly runs. Commits.

        The increment is a conditional UPDATE on ``usage_count``, and the
        first run of a month inserts under a unique constraint, so of two
        overlapping attempts only one is counted and the other is rejected.

        Raises:
            RateLimitError: the monthly runs are already taken.
        """
        now = utcnow()
        limit = self.settings.ANONYMOUS_RUNS_PER_MONTH
        stmt = (
            update(AnonymousPlaygroundUsage)
            .where(
                *self._scoped(identity),
                AnonymousPlaygroundUsage.usage_count < limit,
            )
            .values(
                usage_count=AnonymousPlaygroundUsage.usage_count + 1,
                package_id=package_id,
                model=model,
                last_used_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            if limit < 1 or await self._get_usage(identity) is not None:
                await self.db.rollback()
                raise self._limit_exceeded(identity)
            self.db.add(
                AnonymousPlaygroundUsage(
                    fingerprint_hash=identity.fingerprint_hash,
                    ip_subnet=identity.ip_subnet,
                    user_agent=identity.user_agent,
                    current_month=identity.month,
                    usage_count=1,
                    package_id=package_id,
                    model=model,
                    first_used_at=now,
                    last_used_at=now,
                )
            )

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise self._limit_exceeded(identity)

        self.logger.info(
            "Anonymous playground run recorded",
            ip_subnet=identity.ip_subnet,
            current_month=identity.month,
            model=model,
        )

    async def release(self, identity: AnonymousIdentity) -> None:
        """Give back a run whose provider call failed. Commits."""
        stmt = (
            update(AnonymousPlaygroundUsage)
            .where(
                *self._scoped(identity),
                AnonymousPlaygroundUsage.usage_count > 0,
            )
            .values(usage_count=AnonymousPlaygroundUsage.usage_count - 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        await self.db.commit()

        self.logger.info(
            "Anonymous playground run released",
            ip_subnet=identity.ip_subnet,
            current_month=identity.month,
        )
