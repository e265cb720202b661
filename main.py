# main.py
import sys
import os
import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import config
from database import db, ensure_indexes
from errors import ExamError
from routes import exams, proctoring
from services.attempt_manager import AttemptManager

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Exam Proctor API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(exams.router)
app.include_router(proctoring.router)


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.code, "detail": exc.message},
    )


async def expire_overdue_attempts(interval: int):
    manager = AttemptManager(db)
    while True:
        await asyncio.sleep(interval)
        try:
            await manager.expire_overdue()
        except ExamError as e:
            logger.error(f"Overdue attempt sweep failed: {e.message}")


@app.on_event("startup")
async def startup_event():
    await ensure_indexes(db)
    if config.EXPIRY_SWEEP_INTERVAL > 0:
        app.state.expiry_task = asyncio.create_task(expire_overdue_attempts(config.EXPIRY_SWEEP_INTERVAL))


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "expiry_task", None)
    if task:
        task.cancel()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
