from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from jobletter.api.deps import get_db, get_owner_id
from jobletter.api.schemas import (
    CancelResponse,
    GenerationRequest,
    GenerationResponse,
    JobExtractRequest,
    JobExtractResponse,
    LetterUpdateRequest,
    ProfileRequest,
    ProfileResponse,
    ProgressResponse,
)
from jobletter.config import get_settings
from jobletter.core.job_fetcher import fetch_job_text
from jobletter.core.runtime import find_orchestrator, get_event_bus, get_orchestrator
from jobletter.db.repositories import Repository
from jobletter.errors import ClassifiedError
from jobletter.llm.writer import LetterWriter
from jobletter.types import ApplicantProfile, GeneratedLetter, JobRecord, RunState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _profile_response(owner_id: str, row) -> ProfileResponse:
    if row is None:
        return ProfileResponse(owner_id=owner_id, is_complete=False)
    return ProfileResponse(
        owner_id=row.owner_id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        address=row.address,
        experience=row.experience,
        education=row.education,
        skills=row.skills,
        is_complete=ApplicantProfile.model_validate(row).is_complete,
        updated_at=row.updated_at,
    )


@router.get("/profile", response_model=ProfileResponse)
def get_profile(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)) -> ProfileResponse:
    return _profile_response(owner_id, Repository(db).get_profile(owner_id))


@router.put("/profile", response_model=ProfileResponse)
def put_profile(
    payload: ProfileRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
) -> ProfileResponse:
    row = Repository(db).upsert_profile(owner_id, payload.model_dump())
    return _profile_response(owner_id, row)


@router.post("/generations", response_model=GenerationResponse)
async def create_generation(payload: GenerationRequest, owner_id: str = Depends(get_owner_id)) -> GenerationResponse:
    orchestrator = get_orchestrator(owner_id)
    event_bus = get_event_bus()
    try:
        result = await orchestrator.run(payload.job, owner_id=owner_id, existing_job_id=payload.existing_job_id)
    except ClassifiedError as exc:
        if not exc.silent:
            await event_bus.publish(owner_id, {"type": "error", "owner_id": owner_id, "error": exc.to_dict()})
        raise

    await event_bus.publish(
        owner_id,
        {"type": "result", "owner_id": owner_id, "job_id": result.job.id, "letter_id": result.letter.id},
    )
    return GenerationResponse.model_validate(result.model_dump())


@router.post("/generations/cancel", response_model=CancelResponse)
def cancel_generation(owner_id: str = Depends(get_owner_id)) -> CancelResponse:
    orchestrator = find_orchestrator(owner_id)
    return CancelResponse(cancelled=orchestrator.cancel() if orchestrator else False)


@router.get("/generations/progress", response_model=ProgressResponse)
def get_generation_progress(owner_id: str = Depends(get_owner_id)) -> ProgressResponse:
    orchestrator = find_orchestrator(owner_id)
    if orchestrator is None:
        return ProgressResponse(state=RunState.IDLE.value, attempt=0)
    return ProgressResponse.model_validate(orchestrator.snapshot())


@router.websocket("/generations/stream")
async def stream_generation_events(websocket: WebSocket, owner_id: str) -> None:
    await websocket.accept()
    event_bus = get_event_bus()
    try:
        async for event in event_bus.subscribe(owner_id):
            await websocket.send_json(event)
    except WebSocketDisconnect:
        return


@router.get("/jobs", response_model=list[JobRecord])
def list_jobs(limit: int = 50, owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)) -> list[JobRecord]:
    return [JobRecord.model_validate(row) for row in Repository(db).list_jobs(owner_id, limit=limit)]


@router.post("/jobs/extract", response_model=JobExtractResponse)
def extract_job(payload: JobExtractRequest, owner_id: str = Depends(get_owner_id)) -> JobExtractResponse:
    settings = get_settings()
    text = fetch_job_text(payload.url, timeout_sec=settings.job_fetch_timeout_sec)
    draft = LetterWriter(settings).extract_job_info(url=payload.url, text=text)
    logger.info("Extracted job draft owner=%s url=%s fetched=%s", owner_id, payload.url, bool(text))
    return JobExtractResponse(job=draft, fetched=bool(text))


@router.get("/jobs/{job_id}", response_model=JobRecord)
def get_job(job_id: str, owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)) -> JobRecord:
    row = Repository(db).get_job(job_id)
    if row is None or row.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobRecord.model_validate(row)


@router.delete("/jobs/{job_id}")
def delete_job(job_id: str, owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)) -> dict:
    if not Repository(db).delete_job(job_id, owner_id):
        raise HTTPException(status_code=404, detail="Job not found")
    return {"deleted": job_id}


@router.get("/jobs/{job_id}/letters", response_model=list[GeneratedLetter])
def list_job_letters(
    job_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
) -> list[GeneratedLetter]:
    repo = Repository(db)
    job = repo.get_job(job_id)
    if job is None or job.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="Job not found")
    return [GeneratedLetter.model_validate(row) for row in repo.list_letters_for_job(job_id)]


@router.patch("/letters/{letter_id}", response_model=GeneratedLetter)
def update_letter(
    letter_id: str,
    payload: LetterUpdateRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
) -> GeneratedLetter:
    repo = Repository(db)
    letter = repo.get_letter(letter_id)
    if letter is None or letter.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="Letter not found")
    try:
        row = repo.update_letter_content(letter_id, payload.content)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return GeneratedLetter.model_validate(row)
