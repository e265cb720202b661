# models/question.py
from pydantic import BaseModel, model_validator
from typing import List

class QuestionOption(BaseModel):
    optionIndex: str  # Label, e.g. "A"
    optionText: str

class PublicQuestion(BaseModel):
    """Question as shown to a test-taker. Carries no answer key."""
    id: str
    testId: str
    questionText: str
    options: List[QuestionOption]
    marks: int = 1
    questionNumber: int

    def labels(self) -> List[str]:
        return [option.optionIndex for option in self.options]

class AnswerKeyQuestion(PublicQuestion):
    """Question with its answer key, only ever handed to the scorer."""
    correctAnswer: str

    @model_validator(mode="after")
    def check_answer_key(self):
        labels = self.labels()
        if len(set(labels)) != len(labels):
            raise ValueError(f"Question {self.id} has duplicate option labels")
        if labels.count(self.correctAnswer) != 1:
            raise ValueError(f"Question {self.id} correctAnswer does not match an option label")
        return self
