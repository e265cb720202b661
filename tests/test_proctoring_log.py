"""
Tests for the proctoring event log
"""
import httpx
import pytest
import pytest_asyncio

from errors import NotFound, ValidationFailure
from models.proctoring import BehaviorEventCreate, EventType, Severity
from services.attempt_manager import AttemptManager
from services.inference_client import InferenceClient
from services.proctoring_log import ProctoringEventLog
from conftest import inference_transport


def event_log(db, clock, *replies):
    inference = InferenceClient(base_url="http://inference.test", transport=inference_transport(*replies))
    return ProctoringEventLog(db, inference, clock=clock)


@pytest_asyncio.fixture
async def attempt(db, clock):
    started, _ = await AttemptManager(db, clock=clock).start("student-1", "test-algebra")
    return started


class TestInferenceProducer:
    """Webcam frames scored by the inference service"""

    @pytest.mark.asyncio
    async def test_mobile_detection_is_critical(self, db, clock, attempt):
        log = event_log(db, clock, {"cheating_score": 85, "mobile_detected": True, "message": "", "issues": ["phone"]})

        result = await log.check_frame("student-1", "test-algebra", attempt.id, 3, b"jpeg", "image/jpeg")

        assert result.monitoringStatus == "ok"
        assert result.severity == Severity.CRITICAL
        assert result.eventType == EventType.MOBILE_DETECTION
        assert result.cheatingScore == 85
        stored = await db.proctoring_events.find_one({"id": result.eventId})
        assert stored["severity"] == "critical"
        assert stored["eventType"] == "mobile-detection"
        assert stored["questionNumber"] == 3
        assert stored["description"] == "Mobile device detected during monitoring"
        assert stored["rawDetails"]["issues"] == ["phone"]

    @pytest.mark.asyncio
    async def test_raw_payload_is_stored_as_received(self, db, clock, attempt):
        reply = {"cheating_score": 85, "mobile_detected": True, "message": "", "face_count": 2, "boxes": [[1, 2, 3, 4]]}
        log = event_log(db, clock, reply)

        result = await log.check_frame("student-1", "test-algebra", attempt.id, 1, b"jpeg", "image/jpeg")

        stored = await db.proctoring_events.find_one({"id": result.eventId})
        assert stored["rawDetails"] == reply
        assert result.rawDetails == reply

    @pytest.mark.asyncio
    async def test_low_score_face_check(self, db, clock, attempt):
        log = event_log(db, clock, {"cheating_score": 20, "mobile_detected": False, "message": "Face visible"})

        result = await log.check_frame("student-1", "test-algebra", attempt.id, None, b"jpeg", "image/jpeg")

        assert result.severity == Severity.LOW
        assert result.eventType == EventType.FACE_DETECTION
        assert result.message == "Face visible"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        httpx.ReadTimeout("timed out"),
        503,
        {"cheating_score": None, "mobile_detected": True},
    ])
    async def test_upstream_failure_degrades_to_unknown(self, db, clock, attempt, reply):
        log = event_log(db, clock, reply)

        result = await log.check_frame("student-1", "test-algebra", attempt.id, 1, b"jpeg", "image/jpeg")

        assert result.monitoringStatus == "unknown"
        assert result.eventId is None
        assert await db.proctoring_events.count_documents({}) == 0
        stored = await db.attempts.find_one({"id": attempt.id})
        assert stored["status"] == "in-progress"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("image,content_type", [
        (b"", "image/jpeg"),
        (b"data", "application/pdf"),
        (b"data", None),
    ])
    async def test_invalid_uploads(self, db, clock, attempt, image, content_type):
        log = event_log(db, clock, {"cheating_score": 0, "mobile_detected": False})

        with pytest.raises(ValidationFailure):
            await log.check_frame("student-1", "test-algebra", attempt.id, 1, image, content_type)

    @pytest.mark.asyncio
    async def test_oversized_upload(self, db, clock, attempt, monkeypatch):
        import config
        monkeypatch.setattr(config, "MAX_FRAME_BYTES", 8)
        log = event_log(db, clock, {"cheating_score": 0, "mobile_detected": False})

        with pytest.raises(ValidationFailure):
            await log.check_frame("student-1", "test-algebra", attempt.id, 1, b"123456789", "image/png")

    @pytest.mark.asyncio
    async def test_frame_for_someone_elses_attempt(self, db, clock, attempt):
        log = event_log(db, clock, {"cheating_score": 0, "mobile_detected": False})

        with pytest.raises(NotFound):
            await log.check_frame("student-2", "test-algebra", attempt.id, 1, b"jpeg", "image/jpeg")


class TestBehaviorProducer:
    """Client-observed focus events"""

    @pytest.mark.asyncio
    async def test_tab_switch_defaults(self, db, clock, attempt):
        log = event_log(db, clock, {"cheating_score": 0, "mobile_detected": False})

        event = await log.log_behavior("student-1", BehaviorEventCreate(
            testId="test-algebra", attemptId=attempt.id, eventType="tab-switch", questionNumber=2,
        ))

        assert event.eventType == EventType.TAB_SWITCH
        assert event.severity == Severity.LOW
        assert event.cheatingScore == 0
        assert event.rawDetails is None
        assert event.timestamp == clock.now

    @pytest.mark.asyncio
    async def test_attempt_must_match_test(self, db, clock, attempt):
        log = event_log(db, clock, {"cheating_score": 0, "mobile_detected": False})

        with pytest.raises(NotFound):
            await log.log_behavior("student-1", BehaviorEventCreate(
                testId="test-single", attemptId=attempt.id, eventType="window-blur",
            ))


class TestReads:
    """Listing events"""

    @pytest.mark.asyncio
    async def test_own_events_newest_first(self, db, clock, attempt):
        log = event_log(db, clock, {"cheating_score": 65, "mobile_detected": False})
        await log.log_behavior("student-1", BehaviorEventCreate(
            testId="test-algebra", attemptId=attempt.id, eventType="tab-switch",
        ))
        clock.advance(5)
        await log.check_frame("student-1", "test-algebra", attempt.id, 1, b"jpeg", "image/jpeg")
        clock.advance(5)
        await log.log_behavior("student-1", BehaviorEventCreate(
            testId="test-algebra", attemptId=attempt.id, eventType="window-blur", severity="medium",
        ))

        events = await log.list_by_attempt(attempt.id, "student-1")

        assert [e.eventType for e in events] == [EventType.WINDOW_BLUR, EventType.FACE_DETECTION, EventType.TAB_SWITCH]
        assert events[1].severity == Severity.HIGH
        assert await log.list_by_attempt(attempt.id, "student-2") == []

    @pytest.mark.asyncio
    async def test_operator_view_joins_user_and_test(self, db, clock, attempt):
        log = event_log(db, clock, {"cheating_score": 0, "mobile_detected": False})
        await log.log_behavior("student-1", BehaviorEventCreate(
            testId="test-algebra", attemptId=attempt.id, eventType="gaze-away",
        ))

        events = await log.list_by_test("test-algebra")

        assert len(events) == 1
        assert events[0].user.email == "asha@example.com"
        assert events[0].test.title == "Algebra Basics"
        assert await log.list_by_test("test-single") == []
