# database.py
from contextlib import asynccontextmanager
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError
import logging

import config
from errors import PersistenceFailure

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(config.MONGODB_URI)
db = client[config.MONGODB_DB]


def get_db():
    return db


async def ensure_indexes(database):
    await database.users.create_index("id", unique=True)
    await database.tests.create_index("id", unique=True)
    await database.questions.create_index("id", unique=True)
    await database.questions.create_index([("testId", ASCENDING), ("questionNumber", ASCENDING)])
    await database.attempts.create_index("id", unique=True)
    # One row per attempt slot; concurrent starts collide here instead of overrunning allowedAttempts
    await database.attempts.create_index(
        [("userId", ASCENDING), ("testId", ASCENDING), ("attemptNumber", ASCENDING)],
        unique=True,
    )
    # openSlot is "<userId>:<testId>" while in progress and unset once sealed
    await database.attempts.create_index("openSlot", unique=True, sparse=True)
    await database.attempts.create_index([("status", ASCENDING), ("expiresAt", ASCENDING)])
    await database.proctoring_events.create_index("id", unique=True)
    await database.proctoring_events.create_index([("testId", ASCENDING), ("timestamp", DESCENDING)])
    await database.proctoring_events.create_index(
        [("attemptId", ASCENDING), ("userId", ASCENDING), ("timestamp", DESCENDING)]
    )


@asynccontextmanager
async def persistence_guard(action: str):
    """Turn driver errors raised while reading into PersistenceFailure."""
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error(f"MongoDB error during {action}: {str(e)}")
        raise PersistenceFailure(f"Storage error during {action}") from e


async def retry_write(operation, action: str, retries: int = None):
    """Run a write, retrying driver failures before giving up.

    ``operation`` is a zero-argument callable returning a fresh awaitable on
    every call. DuplicateKeyError is passed through untouched since callers use
    it as a signal, not a failure.
    """
    retries = config.WRITE_RETRIES if retries is None else retries
    attempt = 0
    while True:
        try:
            return await operation()
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            if attempt >= retries:
                logger.error(f"MongoDB write failed during {action} after {attempt + 1} tries: {str(e)}")
                raise PersistenceFailure(f"Storage error during {action}") from e
            attempt += 1
            logger.warning(f"Retrying {action} after MongoDB error: {str(e)}")
