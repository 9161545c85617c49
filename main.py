import asyncio
import os
import uuid
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from fastapi import FastAPI, File, Form, UploadFile, HTTPException, Request
from celery import Celery

from config import Config
from models import PronunciationResult, ScoreRequest
from services.session import (
    AttemptInProgress,
    PracticeSession,
    SessionClosed,
    SessionRegistry,
    score_transcript,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.sessions = SessionRegistry(Config.provider_config())
    yield
    await app.state.sessions.close_all()


app = FastAPI(title="Pronunciation Scoring Service", version="1.0.0", lifespan=lifespan)

# Initialize Celery
celery_app = Celery(
    "pronunciation_scoring",
    broker=Config.CELERY_BROKER_URL,
    backend=Config.CELERY_RESULT_BACKEND
)


async def _score_in_fresh_session(target_word: str, audio: Optional[bytes]) -> dict:
    async with PracticeSession(Config.provider_config()) as session:
        result = await session.transcribe_and_score(target_word, audio)
    return result.model_dump(mode="json")


@celery_app.task(name="score_attempt_task")
def score_attempt_task(file_path: Optional[str], target_word: str) -> dict:
    """
    Celery task that transcribes and scores one attempt in a worker process.
    The uploaded file is removed once it has been read.
    """
    request_id = str(uuid.uuid4())[:8]
    logging.info(f"[{request_id}] Starting background scoring for '{target_word}'")

    try:
        audio = None
        if file_path:
            with open(file_path, "rb") as f:
                audio = f.read()
        response_data = asyncio.run(_score_in_fresh_session(target_word, audio))
        logging.info(f"[{request_id}] Finished background scoring for '{target_word}'")
        return response_data
    except Exception as e:
        logging.error(f"[{request_id}] Background scoring error for '{target_word}': {str(e)}")
        raise
    finally:
        if file_path and os.path.exists(file_path):
            os.remove(file_path)


async def _read_audio(audio: Optional[UploadFile]) -> Optional[bytes]:
    """Validate an uploaded recording and return its bytes."""
    if audio is None or not audio.filename:
        return None

    file_extension = Path(audio.filename).suffix.lower()
    if file_extension not in Config.ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file format. Allowed: {sorted(Config.ALLOWED_EXTENSIONS)}"
        )

    content = await audio.read()
    if len(content) == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(content) > Config.MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail="File too large")
    return content


def _require_target_word(target_word: str) -> str:
    target_word = target_word.strip()
    if not target_word:
        raise HTTPException(status_code=400, detail="Missing target word")
    return target_word


@app.post("/pronunciation", response_model=PronunciationResult)
async def transcribe_and_score(
    request: Request,
    target_word: str = Form(...),
    learner_id: str = Form("anonymous"),
    audio: Optional[UploadFile] = File(None),
):
    """
    Transcribes the recording (or simulates a transcript when no provider is
    configured) and scores it against the target word.
    """
    request_id = str(uuid.uuid4())[:8]
    target_word = _require_target_word(target_word)
    logging.info(f"[{request_id}] Received attempt for '{target_word}' from learner {learner_id}")

    content = await _read_audio(audio)
    session = await request.app.state.sessions.get(learner_id)
    try:
        return await session.transcribe_and_score(target_word, content)
    except (AttemptInProgress, SessionClosed) as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/pronunciation/score", response_model=PronunciationResult)
async def score_existing_transcript(payload: ScoreRequest):
    """Score a transcript that was recognised on the client."""
    target_word = _require_target_word(payload.target_word)
    return score_transcript(target_word, payload.transcript, payload.confidence)


@app.post("/pronunciation/async", response_model=dict)
async def enqueue_attempt(
    target_word: str = Form(...),
    audio: Optional[UploadFile] = File(None),
):
    """
    Saves the recording and enqueues scoring as a background task.
    Returns a task ID.
    """
    request_id = str(uuid.uuid4())[:8]
    target_word = _require_target_word(target_word)
    content = await _read_audio(audio)

    file_path = None
    try:
        if content is not None:
            os.makedirs(Config.UPLOAD_DIR, exist_ok=True)
            file_extension = Path(audio.filename).suffix.lower()
            file_path = f"{Config.UPLOAD_DIR}/{uuid.uuid4()}{file_extension}"
            with open(file_path, "wb") as buffer:
                buffer.write(content)

        task = score_attempt_task.delay(file_path, target_word)
        logging.info(f"[{request_id}] Enqueued task {task.id} for '{target_word}'")
        return {"message": "Processing started", "task_id": task.id}
    except Exception as e:
        logging.error(f"[{request_id}] Error enqueuing task: {str(e)}")
        if file_path and os.path.exists(file_path):
            os.remove(file_path)
        raise HTTPException(status_code=500, detail=f"Failed to start processing: {str(e)}")


@app.get("/status/{task_id}", response_model=dict)
async def get_task_status(task_id: str):
    """
    Check the status of a background scoring task.
    """
    task = celery_app.AsyncResult(task_id)

    if task.state == "PENDING":
        response = {
            "status": "PENDING",
            "message": "Task is pending or not found"
        }
    elif task.state == "SUCCESS":
        response = {
            "status": "SUCCESS",
            "result": task.result
        }
    elif task.state == "FAILURE":
        response = {
            "status": "FAILURE",
            "message": str(task.info),
        }
    else:
        response = {
            "status": task.state,
            "message": "Unknown state"
        }
    return response


@app.delete("/sessions/{learner_id}")
async def reset_session(learner_id: str, request: Request):
    """Clear a learner's attempt history."""
    try:
        found = request.app.state.sessions.reset(learner_id)
    except AttemptInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not found:
        raise HTTPException(status_code=404, detail="No session for this learner")
    return {"status": "reset", "learner_id": learner_id}


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "Pronunciation Scoring Service is running"}


@app.get("/health/provider")
async def provider_health_check():
    """Report whether transcripts come from Seed-ASR or the simulator"""
    if Config.provider_config().is_configured:
        return {"status": "healthy", "provider": "seed-asr", "message": "Seed-ASR credentials configured"}
    return {"status": "degraded", "provider": "fallback", "message": "Seed-ASR not configured, transcripts are simulated"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
