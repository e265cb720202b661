# routes/exams.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from database import get_db
from models.attempt import SaveAnswerRequest, StartAttemptRequest, SubmitAttemptRequest, UpdateTimeRequest
from services.attempt_manager import AttemptManager
from services.exam_catalog import ExamCatalog
from .auth import get_current_user

router = APIRouter(prefix="/api/exam", tags=["exam"])

def get_attempt_manager(db=Depends(get_db)) -> AttemptManager:
    return AttemptManager(db)

def get_catalog(db=Depends(get_db)) -> ExamCatalog:
    return ExamCatalog(db)

@router.get("/all")
async def get_all_tests(current_user: dict = Depends(get_current_user), catalog: ExamCatalog = Depends(get_catalog)):
    tests = await catalog.list_active_tests()
    return {"success": True, "tests": tests}

@router.get("/progress/{attempt_id}")
async def get_attempt(
    attempt_id: str,
    current_user: dict = Depends(get_current_user),
    manager: AttemptManager = Depends(get_attempt_manager),
):
    attempt = await manager.get_attempt(attempt_id, current_user["id"])
    return {"success": True, "attempt": attempt}

@router.get("/{test_id}")
async def get_test(test_id: str, current_user: dict = Depends(get_current_user), catalog: ExamCatalog = Depends(get_catalog)):
    test = await catalog.get_test(test_id)
    return {"success": True, "test": test}

@router.get("/{test_id}/questions")
async def get_test_questions(
    test_id: str,
    current_user: dict = Depends(get_current_user),
    catalog: ExamCatalog = Depends(get_catalog),
):
    await catalog.get_test(test_id)
    questions = await catalog.public_questions(test_id)
    return {"success": True, "questions": questions}

@router.post("/start")
async def start_test(
    request: StartAttemptRequest,
    current_user: dict = Depends(get_current_user),
    manager: AttemptManager = Depends(get_attempt_manager),
):
    attempt, created = await manager.start(current_user["id"], request.testId)
    message = "Test started successfully" if created else "Resuming existing attempt"
    return JSONResponse(
        status_code=201 if created else 200,
        content=jsonable_encoder({"success": True, "message": message, "attempt": attempt}),
    )

@router.post("/save-answer")
async def save_answer(
    request: SaveAnswerRequest,
    current_user: dict = Depends(get_current_user),
    manager: AttemptManager = Depends(get_attempt_manager),
):
    attempt = await manager.save_answer(
        request.attemptId, current_user["id"], request.questionId, request.selectedAnswer
    )
    return {"success": True, "message": "Answer saved successfully", "attempt": attempt}

@router.post("/update-time")
async def update_time(
    request: UpdateTimeRequest,
    current_user: dict = Depends(get_current_user),
    manager: AttemptManager = Depends(get_attempt_manager),
):
    remaining = await manager.update_time(request.attemptId, current_user["id"], request.timeRemaining)
    return {"success": True, "message": "Time updated", "timeRemaining": remaining}

@router.post("/submit")
async def submit_test(
    request: SubmitAttemptRequest,
    current_user: dict = Depends(get_current_user),
    manager: AttemptManager = Depends(get_attempt_manager),
):
    attempt = await manager.submit(request.attemptId, current_user["id"], auto=request.autoSubmit)
    return {"success": True, "message": "Test submitted successfully", "attempt": attempt}
