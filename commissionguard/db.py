# commissionguard/db.py
from motor.motor_asyncio import AsyncIOMotorClient

from commissionguard.config import Settings
from commissionguard.logger import setup_logger

logger = setup_logger(__name__)


class InitializationError(Exception):
    """Raised when the document store client cannot be set up."""


class Database:
    """Explicitly constructed handle on the document store.

    Owns the Motor client; call ``close()`` on shutdown.
    """

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        try:
            self.client = client if client is not None else AsyncIOMotorClient(settings.mongodb_uri)
        except Exception as e:
            logger.error(f"Document store initialization failed: {e}")
            raise InitializationError(str(e)) from e
        # Explicitly pick the database
        self.db = self.client[settings.mongodb_db]

    @property
    def tickets(self):
        return self.db[self.settings.tickets_collection]

    @property
    def users(self):
        return self.db["users"]

    def close(self):
        self.client.close()
        logger.info("Document store connection closed")
