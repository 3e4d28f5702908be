from uuid import UUID

from src.core.base import BaseService
from src.database.models import User
from src.modules.credits.ledger import CreditLedgerService


class UserOnboardingService(BaseService):
    """Service for creating users on first sight and granting signup credits."""

    async def ensure_user_onboarded(
        self,
        user_id: UUID,
        email: str,
        name: str | None = None,
    ) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            return await self._create_user(user_id=user_id, email=email, name=name)
        await self._update_user_info(user, name)
        return user

    async def _create_user(
        self,
        user_id: UUID,
        email: str,
        name: str | None = None,
    ) -> User:
        user = User(id=user_id, email=email, name=name or "")
        self.db.add(user)
        await self.db.flush()

        await CreditLedgerService(self.db).initialize_credits(user_id)
        await self.db.commit()

        self.logger.info("User onboarded", user_id=str(user_id))
        return user

    async def _update_user_info(self, user: User, name: str | None) -> None:
        if name and name != user.name:
            user.name = name
            await self.db.commit()
