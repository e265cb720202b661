# services/attempt_manager.py
from datetime import datetime, timedelta
from typing import Tuple
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
import logging

import config
from database import persistence_guard, retry_write
from errors import ExamError, InvalidState, LimitExceeded, NotFound, PersistenceFailure, ValidationFailure
from models.attempt import (
    AnswerDetail,
    AnsweredQuestion,
    AnswerEntry,
    Attempt,
    AttemptDetail,
    AttemptStatus,
)
from models.exam import ExamSummary
from services.answer_ledger import AnswerLedger
from services.exam_catalog import ExamCatalog
from services.scorer import score_answers

logger = logging.getLogger(__name__)

IN_PROGRESS = AttemptStatus.IN_PROGRESS.value
START_MAX_ROUNDS = 5
# Client timers further off than this are logged
CLOCK_DRIFT_WARNING = 15


class AttemptManager:
    """State machine for a user's take of a test.

    in-progress -> submitted | auto-submitted. The server owns the deadline
    (``expiresAt``); client timer reports are stored only as hints. Every
    write is conditional on the attempt still being in progress, and the
    sealing write is additionally a compare-and-swap on ``version`` so the
    graded answers are exactly the ones stored.
    """

    def __init__(self, db, clock=None, grace_seconds: int = None):
        self.db = db
        self.attempts = db.attempts
        self.catalog = ExamCatalog(db)
        self.ledger = AnswerLedger(db)
        self.clock = clock or datetime.utcnow
        if grace_seconds is None:
            grace_seconds = config.ATTEMPT_GRACE_SECONDS
        self.grace = timedelta(seconds=grace_seconds)

    def _now(self) -> datetime:
        # MongoDB keeps millisecond precision
        now = self.clock()
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    def _remaining(self, doc: dict, now: datetime) -> int:
        if doc["status"] != IN_PROGRESS:
            return doc.get("timeRemaining", 0)
        return max(0, int((doc["expiresAt"] - now).total_seconds()))

    def _is_overdue(self, doc: dict, now: datetime) -> bool:
        return doc["status"] == IN_PROGRESS and now > doc["expiresAt"] + self.grace

    def _to_attempt(self, doc: dict, now: datetime) -> Attempt:
        return Attempt(**{**doc, "timeRemaining": self._remaining(doc, now)})

    async def _load(self, attempt_id: str, user_id: str) -> dict:
        async with persistence_guard("load attempt"):
            doc = await self.attempts.find_one({"id": attempt_id, "userId": user_id}, {"_id": 0})
        if not doc:
            raise NotFound("Attempt not found")
        return doc

    async def _ensure_open(self, doc: dict, now: datetime):
        if doc["status"] != IN_PROGRESS:
            raise InvalidState("Test already submitted")
        if self._is_overdue(doc, now):
            await self._seal(doc, auto=True)
            raise InvalidState("Time is up, the test was auto-submitted")

    async def start(self, user_id: str, test_id: str) -> Tuple[Attempt, bool]:
        """Create a new attempt or resume the open one.

        Returns the attempt and whether it was newly created.
        """
        test = await self.catalog.get_test(test_id)
        if not test.isActive:
            raise NotFound("Test not found or inactive")
        now = self._now()
        if not test.is_open(now):
            raise InvalidState("Test is not open at this time")

        for _ in range(START_MAX_ROUNDS):
            async with persistence_guard("find open attempt"):
                existing = await self.attempts.find_one(
                    {"userId": user_id, "testId": test_id, "status": IN_PROGRESS}, {"_id": 0}
                )
            if existing:
                if self._is_overdue(existing, now):
                    try:
                        await self._seal(existing, auto=True)
                    except InvalidState:
                        pass  # already sealed
                    continue
                logger.info(f"Resuming attempt {existing['id']} for user {user_id} on test {test_id}")
                return self._to_attempt(existing, now), False

            async with persistence_guard("count attempts"):
                count = await self.attempts.count_documents({"userId": user_id, "testId": test_id})
            if count >= test.allowedAttempts:
                raise LimitExceeded("Maximum attempts reached")

            duration = test.duration * 60
            doc = {
                "id": str(ObjectId()),
                "userId": user_id,
                "testId": test_id,
                "attemptNumber": count + 1,
                "status": IN_PROGRESS,
                "openSlot": f"{user_id}:{test_id}",
                "answers": [],
                "timeRemaining": duration,
                "clientTimeRemaining": None,
                "lastHeartbeatAt": None,
                "totalScore": 0,
                "isPassed": None,
                "startedAt": now,
                "expiresAt": now + timedelta(seconds=duration),
                "submittedAt": None,
                "version": 0,
            }
            try:
                await retry_write(lambda: self.attempts.insert_one(doc), "start attempt")
            except DuplicateKeyError:
                # Lost the race for this attempt slot; the winner's attempt is resumed next round
                logger.info(f"Concurrent start for user {user_id} on test {test_id}, retrying")
                continue
            doc.pop("_id", None)
            logger.info(f"Started attempt {doc['id']} (#{doc['attemptNumber']}) for user {user_id} on test {test_id}")
            return self._to_attempt(doc, now), True

        raise PersistenceFailure("Could not start the test, please retry")

    async def save_answer(self, attempt_id: str, user_id: str, question_id: str, selected_answer: str) -> Attempt:
        doc = await self._load(attempt_id, user_id)
        now = self._now()
        await self._ensure_open(doc, now)

        question = await self.catalog.find_question(doc["testId"], question_id)
        if selected_answer not in question.labels():
            raise ValidationFailure(f"'{selected_answer}' is not an option of this question")

        updated = await self.ledger.save(self._to_attempt(doc, now), question_id, selected_answer)
        return self._to_attempt(updated, self._now())

    async def update_time(self, attempt_id: str, user_id: str, seconds: int) -> int:
        """Record the client's timer as a heartbeat; return the server's remaining seconds."""
        doc = await self._load(attempt_id, user_id)
        now = self._now()
        await self._ensure_open(doc, now)

        remaining = self._remaining(doc, now)
        result = await retry_write(
            lambda: self.attempts.update_one(
                {"id": attempt_id, "status": IN_PROGRESS},
                {"$set": {"clientTimeRemaining": seconds, "lastHeartbeatAt": now, "timeRemaining": remaining}},
            ),
            "update time",
        )
        if result.matched_count == 0:
            raise InvalidState("Test already submitted")
        if abs(seconds - remaining) > CLOCK_DRIFT_WARNING:
            logger.warning(
                f"Client timer for attempt {attempt_id} reports {seconds}s, server has {remaining}s"
            )
        return remaining

    async def submit(self, attempt_id: str, user_id: str, auto: bool = False) -> Attempt:
        doc = await self._load(attempt_id, user_id)
        return await self._seal(doc, auto=auto)

    async def _seal(self, doc: dict, auto: bool) -> Attempt:
        if doc["status"] != IN_PROGRESS:
            raise InvalidState("Test already submitted")
        test = await self.catalog.get_test(doc["testId"])
        key = await self.catalog.answer_key(doc["testId"])

        for _ in range(config.SUBMIT_MAX_RETRIES):
            if doc["status"] != IN_PROGRESS:
                raise InvalidState("Test already submitted")
            now = self._now()
            answers = [AnswerEntry(**answer) for answer in doc.get("answers", [])]
            score = score_answers(answers, key, test.passingMarks)
            status = AttemptStatus.AUTO_SUBMITTED if auto or self._is_overdue(doc, now) else AttemptStatus.SUBMITTED

            result = await retry_write(
                lambda: self.attempts.update_one(
                    {"id": doc["id"], "status": IN_PROGRESS, "version": doc["version"]},
                    {
                        "$set": {
                            "status": status.value,
                            "answers": [answer.dict() for answer in score.answers],
                            "totalScore": score.total_score,
                            "isPassed": score.is_passed,
                            "submittedAt": now,
                            "timeRemaining": self._remaining(doc, now),
                        },
                        "$unset": {"openSlot": ""},
                        "$inc": {"version": 1},
                    },
                ),
                "submit attempt",
            )
            if result.matched_count:
                logger.info(
                    f"Attempt {doc['id']} {status.value}: score {score.total_score}/{test.totalMarks}, "
                    f"passed={score.is_passed}"
                )
                async with persistence_guard("reload attempt"):
                    sealed = await self.attempts.find_one({"id": doc["id"]}, {"_id": 0})
                return self._to_attempt(sealed, now)

            # An answer landed or another submit won; re-read and decide again
            async with persistence_guard("reload attempt"):
                doc = await self.attempts.find_one({"id": doc["id"]}, {"_id": 0})
            if not doc:
                raise NotFound("Attempt not found")

        raise PersistenceFailure("Could not submit the test due to concurrent updates, please retry")

    async def expire_overdue(self) -> int:
        """Auto-submit every open attempt past its deadline and grace period."""
        now = self._now()
        async with persistence_guard("find overdue attempts"):
            overdue = await self.attempts.find(
                {"status": IN_PROGRESS, "expiresAt": {"$lt": now - self.grace}}, {"_id": 0}
            ).to_list(None)
        sealed = 0
        for doc in overdue:
            try:
                await self._seal(doc, auto=True)
                sealed += 1
            except InvalidState:
                continue  # the owner submitted in the meantime
            except ExamError as e:
                logger.error(f"Cannot auto-submit attempt {doc['id']}: {e.message}")
        if sealed:
            logger.info(f"Auto-submitted {sealed} overdue attempt(s)")
        return sealed

    async def get_attempt(self, attempt_id: str, user_id: str) -> AttemptDetail:
        doc = await self._load(attempt_id, user_id)
        attempt = self._to_attempt(doc, self._now())
        test = await self.catalog.get_test(attempt.testId)
        questions = await self.catalog.questions_by_id(
            attempt.testId, [answer.questionId for answer in attempt.answers]
        )

        answers = []
        for answer in attempt.answers:
            question = questions.get(answer.questionId)
            answers.append(AnswerDetail(
                **answer.dict(),
                question=AnsweredQuestion(questionText=question.questionText, options=question.options)
                if question else None,
            ))
        return AttemptDetail(
            **attempt.dict(exclude={"answers"}),
            answers=answers,
            test=ExamSummary(**test.dict()),
        )
