# services/proctoring_log.py
from datetime import datetime
from typing import List, Optional
from bson import ObjectId
import logging

import config
from database import persistence_guard, retry_write
from errors import NotFound, UpstreamFailure, ValidationFailure
from models.proctoring import (
    BehaviorEventCreate,
    FrameCheckResult,
    ProctoringEvent,
    ProctoringEventView,
    TestTitle,
    UserSummary,
)
from services.inference_client import InferenceClient
from services.severity import describe, event_type_of, severity_of

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("timestamp", -1), ("id", -1)]


class ProctoringEventLog:
    """Append-only store of monitoring events.

    Two producers write here: client-observed behavior (tab switches, focus
    loss) recorded as asserted, and webcam frames scored by the inference
    service and classified before being stored. Nothing here touches the
    attempt itself, so a slow or failed frame check never holds up answering.
    """

    def __init__(self, db, inference: InferenceClient = None, clock=None):
        self.db = db
        self.events = db.proctoring_events
        self.inference = inference or InferenceClient()
        self.clock = clock or datetime.utcnow

    async def _check_attempt(self, attempt_id: str, user_id: str, test_id: str):
        async with persistence_guard("load attempt"):
            attempt = await self.db.attempts.find_one(
                {"id": attempt_id, "userId": user_id, "testId": test_id}, {"_id": 0, "id": 1}
            )
        if not attempt:
            raise NotFound("Attempt not found")

    async def _append(self, event: dict) -> ProctoringEvent:
        await retry_write(lambda: self.events.insert_one(event), "log proctoring event")
        event.pop("_id", None)
        return ProctoringEvent(**event)

    async def log_behavior(self, user_id: str, payload: BehaviorEventCreate) -> ProctoringEvent:
        await self._check_attempt(payload.attemptId, user_id, payload.testId)
        event = await self._append({
            "id": str(ObjectId()),
            "userId": user_id,
            "testId": payload.testId,
            "attemptId": payload.attemptId,
            "eventType": payload.eventType.value,
            "severity": payload.severity.value,
            "cheatingScore": 0,
            "rawDetails": None,
            "description": payload.description,
            "questionNumber": payload.questionNumber,
            "timestamp": self.clock(),
        })
        logger.info(f"Logged {event.eventType.value} ({event.severity.value}) for attempt {event.attemptId}")
        return event

    async def check_frame(
        self,
        user_id: str,
        test_id: str,
        attempt_id: str,
        question_number: Optional[int],
        image: bytes,
        content_type: str,
        filename: str = "capture.jpg",
    ) -> FrameCheckResult:
        if not image:
            raise ValidationFailure("No image provided")
        if not content_type or not content_type.startswith("image/"):
            raise ValidationFailure("Upload must be an image")
        if len(image) > config.MAX_FRAME_BYTES:
            raise ValidationFailure(f"Image exceeds {config.MAX_FRAME_BYTES} bytes")
        await self._check_attempt(attempt_id, user_id, test_id)

        try:
            result, raw = await self.inference.analyze_frame(image, content_type, filename)
        except UpstreamFailure as e:
            # Only this capture is lost; the next periodic capture tries again
            logger.warning(f"Frame check for attempt {attempt_id} degraded: {e.message}")
            return FrameCheckResult(monitoringStatus="unknown", message=e.message)

        event = await self._append({
            "id": str(ObjectId()),
            "userId": user_id,
            "testId": test_id,
            "attemptId": attempt_id,
            "eventType": event_type_of(result.mobile_detected).value,
            "severity": severity_of(result.cheating_score).value,
            "cheatingScore": result.cheating_score,
            "rawDetails": raw,
            "description": describe(result),
            "questionNumber": question_number,
            "timestamp": self.clock(),
        })
        if event.severity.value in ("high", "critical"):
            logger.warning(
                f"{event.eventType.value} with score {event.cheatingScore} on attempt {attempt_id} (user {user_id})"
            )
        return FrameCheckResult(
            monitoringStatus="ok",
            cheatingScore=event.cheatingScore,
            severity=event.severity,
            eventType=event.eventType,
            rawDetails=raw,
            eventId=event.id,
            message=event.description,
        )

    async def list_by_attempt(self, attempt_id: str, user_id: str) -> List[ProctoringEvent]:
        async with persistence_guard("list proctoring events"):
            events = await self.events.find(
                {"attemptId": attempt_id, "userId": user_id}, {"_id": 0}
            ).sort(NEWEST_FIRST).to_list(None)
        return [ProctoringEvent(**event) for event in events]

    async def list_by_test(self, test_id: str) -> List[ProctoringEventView]:
        async with persistence_guard("list proctoring events"):
            events = await self.events.find({"testId": test_id}, {"_id": 0}).sort(NEWEST_FIRST).to_list(None)
            user_ids = list({event["userId"] for event in events})
            users = await self.db.users.find(
                {"id": {"$in": user_ids}}, {"_id": 0, "id": 1, "name": 1, "email": 1}
            ).to_list(None)
            test = await self.db.tests.find_one({"id": test_id}, {"_id": 0, "id": 1, "title": 1})

        users_by_id = {user["id"]: UserSummary(**user) for user in users}
        test_title = TestTitle(**test) if test else None
        return [
            ProctoringEventView(**event, user=users_by_id.get(event["userId"]), test=test_title)
            for event in events
        ]
