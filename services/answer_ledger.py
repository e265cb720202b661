# services/answer_ledger.py
import logging

from database import persistence_guard, retry_write
from errors import InvalidState, PersistenceFailure
from models.attempt import Attempt, AttemptStatus

logger = logging.getLogger(__name__)

IN_PROGRESS = AttemptStatus.IN_PROGRESS.value
MAX_UPSERT_ROUNDS = 3


class AnswerLedger:
    """Keeps exactly one answer entry per question on an open attempt.

    Both branches of the upsert are single-document atomic updates guarded by
    the attempt still being in progress, so saves for different questions
    never clobber each other and nothing lands after submission.
    """

    def __init__(self, db):
        self.attempts = db.attempts

    async def save(self, attempt: Attempt, question_id: str, selected_answer: str) -> dict:
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidState("Test already submitted")

        for _ in range(MAX_UPSERT_ROUNDS):
            # Overwrite an existing entry in place
            result = await retry_write(
                lambda: self.attempts.update_one(
                    {"id": attempt.id, "status": IN_PROGRESS, "answers.questionId": question_id},
                    {"$set": {"answers.$.selectedAnswer": selected_answer}, "$inc": {"version": 1}},
                ),
                "save answer",
            )
            if result.matched_count:
                return await self._reload(attempt.id)

            # First answer for this question, kept in questionId order
            result = await retry_write(
                lambda: self.attempts.update_one(
                    {"id": attempt.id, "status": IN_PROGRESS, "answers.questionId": {"$ne": question_id}},
                    {
                        "$push": {"answers": {
                            "$each": [{
                                "questionId": question_id,
                                "selectedAnswer": selected_answer,
                                "isCorrect": None,
                                "marksObtained": None,
                            }],
                            "$sort": {"questionId": 1},
                        }},
                        "$inc": {"version": 1},
                    },
                ),
                "save answer",
            )
            if result.matched_count:
                return await self._reload(attempt.id)

            # Neither matched: sealed meanwhile, or a concurrent save added this question first
            current = await self._reload(attempt.id)
            if not current or current["status"] != IN_PROGRESS:
                raise InvalidState("Test already submitted")

        logger.error(f"Could not save answer for question {question_id} on attempt {attempt.id}")
        raise PersistenceFailure("Could not save answer, please retry")

    async def _reload(self, attempt_id: str) -> dict:
        async with persistence_guard("reload attempt"):
            return await self.attempts.find_one({"id": attempt_id}, {"_id": 0})
