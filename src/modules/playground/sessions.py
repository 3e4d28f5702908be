"""Playground session management."""

from uuid import UUID

from sqlalchemy import func, select

from src.api.core.exceptions.base import NotFoundError
from src.api.core.messages import MessageCode
from src.core.base import BaseService
from src.database.models import PlaygroundSession
from src.utils.hashing import HashingService


class PlaygroundSessionService(BaseService):
    """Read, delete and share a user's playground sessions.

    Sessions are only appended to by settlement in PlaygroundService.
    """

    async def list_sessions(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[PlaygroundSession], int]:
        total = await self.db.scalar(
            select(func.count())
            .select_from(PlaygroundSession)
            .where(PlaygroundSession.user_id == user_id)
        )
        last_activity = func.coalesce(
            PlaygroundSession.last_run_at, PlaygroundSession.created_at
        )
        stmt = (
            select(PlaygroundSession)
            .where(PlaygroundSession.user_id == user_id)
            .order_by(last_activity.desc(), PlaygroundSession.id)
            .limit(limit)
            .offset(offset)
        )
        sessions = (await self.db.execute(stmt)).scalars().all()
        return list(sessions), total or 0

    async def get_session(self, user_id: UUID, session_id: UUID) -> PlaygroundSession:
        """Get a session owned by ``user_id``.

        Sessions belonging to other users are reported as missing.
        """
        stmt = select(PlaygroundSession).where(
            PlaygroundSession.id == session_id,
            PlaygroundSession.user_id == user_id,
        )
        session = (await self.db.execute(stmt)).scalar_one_or_none()
        if session is None:
            raise NotFoundError(MessageCode.SESSION_NOT_FOUND, resource="session")
        return session

    async def delete_session(self, user_id: UUID, session_id: UUID) -> None:
        session = await self.get_session(user_id, session_id)
        await self.db.delete(session)
        await self.db.commit()
        self.logger.info(
            "Playground session deleted",
            user_id=str(user_id),
            session_id=str(session_id),
        )

    async def share_session(self, user_id: UUID, session_id: UUID) -> str:
        """Make a session public. Returns the existing token if already shared."""
        session = await self.get_session(user_id, session_id)
        if session.share_token and session.is_public:
            return session.share_token

        session.share_token = session.share_token or HashingService.generate_share_token()
        session.is_public = True
        await self.db.commit()

        self.logger.info(
            "Playground session shared",
            user_id=str(user_id),
            session_id=str(session_id),
        )
        return session.share_token

    async def get_shared_session(self, share_token: str) -> PlaygroundSession:
        stmt = select(PlaygroundSession).where(
            PlaygroundSession.share_token == share_token,
            PlaygroundSession.is_public.is_(True),
        )
        session = (await self.db.execute(stmt)).scalar_one_or_none()
        if session is None:
            raise NotFoundError(MessageCode.SESSION_NOT_FOUND, resource="session")
        return session
