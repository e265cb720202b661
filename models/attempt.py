# models/attempt.py
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from models.exam import ExamSummary
from models.question import QuestionOption

class AttemptStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto-submitted"

class AnswerEntry(BaseModel):
    questionId: str
    selectedAnswer: str
    isCorrect: Optional[bool] = None  # Set by the scorer on submission
    marksObtained: Optional[int] = None

class Attempt(BaseModel):
    id: str
    userId: str
    testId: str
    attemptNumber: int
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    answers: List[AnswerEntry] = []
    timeRemaining: int  # In seconds
    totalScore: int = 0
    isPassed: Optional[bool] = None
    startedAt: datetime
    expiresAt: datetime
    submittedAt: Optional[datetime] = None

class AnsweredQuestion(BaseModel):
    questionText: str
    options: List[QuestionOption]

class AnswerDetail(AnswerEntry):
    question: Optional[AnsweredQuestion] = None

class AttemptDetail(Attempt):
    answers: List[AnswerDetail] = []
    test: Optional[ExamSummary] = None

# Request bodies
class StartAttemptRequest(BaseModel):
    testId: str = Field(..., min_length=1)

class SaveAnswerRequest(BaseModel):
    attemptId: str = Field(..., min_length=1)
    questionId: str = Field(..., min_length=1)
    selectedAnswer: str = Field(..., min_length=1)

class UpdateTimeRequest(BaseModel):
    attemptId: str = Field(..., min_length=1)
    timeRemaining: int = Field(..., ge=0)

class SubmitAttemptRequest(BaseModel):
    attemptId: str = Field(..., min_length=1)
    autoSubmit: bool = False
