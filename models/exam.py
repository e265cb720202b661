# models/exam.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

class Exam(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    duration: int  # In minutes
    totalMarks: int
    passingMarks: int
    isActive: bool = True
    allowedAttempts: int = 1
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None

    def is_open(self, now: datetime) -> bool:
        if self.startTime and now < self.startTime:
            return False
        if self.endTime and now > self.endTime:
            return False
        return True

class ExamSummary(BaseModel):
    id: str
    title: str
    duration: int
    totalMarks: int
    passingMarks: int
