from sqlalchemy.ext.asyncio import AsyncSession

from src.utils.logger import get_logger
from src.utils.settings.playground import PlaygroundSettings


class BaseService:
    """Base service holding the session, playground settings and a named logger."""

    def __init__(self, db: AsyncSession, settings: PlaygroundSettings | None = None):
        self.db = db
        self.settings = settings or PlaygroundSettings()
        self.logger = get_logger(self.__class__.__name__)
