# routes/proctoring.py
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from typing import Optional

from database import get_db
from models.proctoring import BehaviorEventCreate
from services.inference_client import InferenceClient
from services.proctoring_log import ProctoringEventLog
from services.stats import StatsAggregator
from .auth import get_current_user, require_operator

router = APIRouter(prefix="/api/cheating", tags=["cheating"])

def get_inference_client() -> InferenceClient:
    return InferenceClient()

def get_event_log(db=Depends(get_db), inference: InferenceClient = Depends(get_inference_client)) -> ProctoringEventLog:
    return ProctoringEventLog(db, inference)

def get_stats(db=Depends(get_db)) -> StatsAggregator:
    return StatsAggregator(db)

@router.post("/log")
async def log_cheating_event(
    request: BehaviorEventCreate,
    current_user: dict = Depends(get_current_user),
    event_log: ProctoringEventLog = Depends(get_event_log),
):
    event = await event_log.log_behavior(current_user["id"], request)
    return JSONResponse(
        status_code=201,
        content=jsonable_encoder({"success": True, "message": "Cheating event logged", "log": event}),
    )

@router.post("/check-webcam")
async def check_webcam_image(
    image: UploadFile = File(...),
    testId: str = Form(...),
    attemptId: str = Form(...),
    questionNumber: Optional[int] = Form(None),
    current_user: dict = Depends(get_current_user),
    event_log: ProctoringEventLog = Depends(get_event_log),
):
    content = await image.read()
    result = await event_log.check_frame(
        current_user["id"],
        testId,
        attemptId,
        questionNumber,
        content,
        image.content_type,
        image.filename or "capture.jpg",
    )
    message = "Image processed" if result.monitoringStatus == "ok" else "Monitoring temporarily unavailable"
    return {"success": True, "message": message, **result.dict()}

@router.get("/logs/{attempt_id}")
async def get_cheating_logs(
    attempt_id: str,
    current_user: dict = Depends(get_current_user),
    event_log: ProctoringEventLog = Depends(get_event_log),
):
    logs = await event_log.list_by_attempt(attempt_id, current_user["id"])
    return {"success": True, "logs": logs}

@router.get("/admin/logs/{test_id}")
async def get_all_cheating_logs(
    test_id: str,
    current_user: dict = Depends(require_operator),
    event_log: ProctoringEventLog = Depends(get_event_log),
):
    logs = await event_log.list_by_test(test_id)
    return {"success": True, "logs": logs}

@router.get("/admin/stats/{test_id}")
async def get_cheating_stats(
    test_id: str,
    current_user: dict = Depends(require_operator),
    stats: StatsAggregator = Depends(get_stats),
):
    summary = await stats.summarize(test_id)
    return {"success": True, "stats": summary}
