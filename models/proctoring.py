# models/proctoring.py
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

class EventType(str, Enum):
    TAB_SWITCH = "tab-switch"
    WINDOW_BLUR = "window-blur"
    FACE_DETECTION = "face-detection"
    MOBILE_DETECTION = "mobile-detection"
    MULTIPLE_FACES = "multiple-faces"
    NO_FACE = "no-face"
    GAZE_AWAY = "gaze-away"
    OTHER = "other"

class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

class ProctoringEvent(BaseModel):
    id: str
    userId: str
    testId: str
    attemptId: str
    eventType: EventType
    severity: Severity = Severity.LOW
    cheatingScore: float = 0  # 0-100
    rawDetails: Optional[Dict[str, Any]] = None  # Full inference payload, kept for audit
    description: Optional[str] = None
    questionNumber: Optional[int] = None
    timestamp: datetime

class UserSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None

class TestTitle(BaseModel):
    id: str
    title: str

class ProctoringEventView(ProctoringEvent):
    user: Optional[UserSummary] = None
    test: Optional[TestTitle] = None

class BehaviorEventCreate(BaseModel):
    testId: str = Field(..., min_length=1)
    attemptId: str = Field(..., min_length=1)
    eventType: EventType
    severity: Severity = Severity.LOW
    description: Optional[str] = Field(None, max_length=1000)
    questionNumber: Optional[int] = Field(None, ge=1)

class InferenceResult(BaseModel):
    """Response body of the face/mobile detection service."""
    cheating_score: float = Field(..., ge=0, le=100)
    mobile_detected: bool
    message: str = ""
    issues: List[str] = []

class FrameCheckResult(BaseModel):
    monitoringStatus: str  # "ok" or "unknown"
    cheatingScore: Optional[float] = None
    severity: Optional[Severity] = None
    eventType: Optional[EventType] = None
    rawDetails: Optional[Dict[str, Any]] = None
    eventId: Optional[str] = None
    message: Optional[str] = None

class UserViolationStats(BaseModel):
    userId: str
    totalViolations: int
    avgCheatingScore: float
    criticalCount: int
    highCount: int
    user: Optional[UserSummary] = None
