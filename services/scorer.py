# services/scorer.py
from typing import Iterable, List, NamedTuple

from models.attempt import AnswerEntry
from models.question import AnswerKeyQuestion

class ScoreResult(NamedTuple):
    answers: List[AnswerEntry]
    total_score: int
    is_passed: bool

def score_answers(
    answers: Iterable[AnswerEntry],
    questions: Iterable[AnswerKeyQuestion],
    passing_marks: int,
) -> ScoreResult:
    """Grade a ledger against the answer key.

    Returns fresh AnswerEntry copies; the inputs are left untouched. Answers
    for questions missing from the key score zero.
    """
    key = {question.id: question for question in questions}
    graded = []
    total_score = 0
    for answer in answers:
        question = key.get(answer.questionId)
        if question is not None and answer.selectedAnswer == question.correctAnswer:
            graded.append(answer.model_copy(update={"isCorrect": True, "marksObtained": question.marks}))
            total_score += question.marks
        else:
            graded.append(answer.model_copy(update={"isCorrect": False, "marksObtained": 0}))
    return ScoreResult(graded, total_score, total_score >= passing_marks)
