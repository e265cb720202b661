# services/exam_catalog.py
from typing import Dict, Iterable, List
from pydantic import ValidationError
import logging

from database import persistence_guard
from errors import NotFound, ValidationFailure
from models.exam import Exam
from models.question import AnswerKeyQuestion, PublicQuestion

logger = logging.getLogger(__name__)

# Mongo projections; the public one strips the answer key at the query itself
PUBLIC_FIELDS = {"_id": 0, "correctAnswer": 0}
ANSWER_KEY_FIELDS = {"_id": 0}


class ExamCatalog:
    """Read-only access to tests and their questions."""

    def __init__(self, db):
        self.db = db

    async def list_active_tests(self) -> List[Exam]:
        async with persistence_guard("list tests"):
            tests = await self.db.tests.find({"isActive": True}, {"_id": 0}).to_list(None)
        return [Exam(**test) for test in tests]

    async def get_test(self, test_id: str) -> Exam:
        async with persistence_guard("load test"):
            test = await self.db.tests.find_one({"id": test_id}, {"_id": 0})
        if not test:
            raise NotFound("Test not found")
        return Exam(**test)

    async def public_questions(self, test_id: str) -> List[PublicQuestion]:
        async with persistence_guard("load questions"):
            questions = await self.db.questions.find(
                {"testId": test_id}, PUBLIC_FIELDS
            ).sort("questionNumber", 1).to_list(None)
        return [PublicQuestion(**question) for question in questions]

    async def answer_key(self, test_id: str) -> List[AnswerKeyQuestion]:
        async with persistence_guard("load answer key"):
            questions = await self.db.questions.find({"testId": test_id}, ANSWER_KEY_FIELDS).to_list(None)
        try:
            return [AnswerKeyQuestion(**question) for question in questions]
        except ValidationError as e:
            logger.error(f"Invalid answer key for test {test_id}: {str(e)}")
            raise ValidationFailure(f"Test {test_id} has an invalid answer key") from e

    async def find_question(self, test_id: str, question_id: str) -> PublicQuestion:
        async with persistence_guard("load question"):
            question = await self.db.questions.find_one({"id": question_id, "testId": test_id}, PUBLIC_FIELDS)
        if not question:
            raise NotFound("Question not found for this test")
        return PublicQuestion(**question)

    async def questions_by_id(self, test_id: str, question_ids: Iterable[str]) -> Dict[str, PublicQuestion]:
        async with persistence_guard("load questions"):
            questions = await self.db.questions.find(
                {"testId": test_id, "id": {"$in": list(question_ids)}}, PUBLIC_FIELDS
            ).to_list(None)
        return {question["id"]: PublicQuestion(**question) for question in questions}
