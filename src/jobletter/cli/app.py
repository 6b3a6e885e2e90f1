from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
import uvicorn
from pydantic import ValidationError

from jobletter.api.app import create_app
from jobletter.config import get_settings
from jobletter.core.gateway import BackendGateway
from jobletter.core.job_fetcher import fetch_job_text
from jobletter.core.orchestrator import GenerationOrchestrator
from jobletter.db.init import init_database
from jobletter.db.repositories import Repository
from jobletter.db.session import SessionLocal
from jobletter.errors import ClassifiedError
from jobletter.llm.writer import LetterWriter
from jobletter.logging_config import configure_logging
from jobletter.types import ApplicantProfile, GenerationProgress, JobInput

app = typer.Typer(help="Jobletter CLI")
profile_app = typer.Typer(help="Manage the applicant profile")
jobs_app = typer.Typer(help="Saved job postings")
letters_app = typer.Typer(help="Generated cover letters")

app.add_typer(profile_app, name="profile")
app.add_typer(jobs_app, name="jobs")
app.add_typer(letters_app, name="letters")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _dump(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


@app.command("init")
def init_cmd() -> None:
    """Initialize database and data directories."""
    configure_logging()
    result = init_database()
    _dump({"ok": True, **result})


@profile_app.command("set")
def profile_set(
    owner: str = typer.Option(..., "--owner"),
    name: str | None = typer.Option(None, "--name"),
    email: str | None = typer.Option(None, "--email"),
    phone: str | None = typer.Option(None, "--phone"),
    address: str | None = typer.Option(None, "--address"),
    experience: str | None = typer.Option(None, "--experience"),
    education: str | None = typer.Option(None, "--education"),
    skills: str | None = typer.Option(None, "--skills"),
    file: Path | None = typer.Option(None, "--file", exists=True, readable=True),
) -> None:
    """Create or update the profile; only the given fields change."""
    configure_logging()
    ensure_initialized()
    values: dict[str, str] = {}
    if file is not None:
        values.update(json.loads(file.read_text(encoding="utf-8")))
    options = {
        "name": name,
        "email": email,
        "phone": phone,
        "address": address,
        "experience": experience,
        "education": education,
        "skills": skills,
    }
    values.update({key: value for key, value in options.items() if value is not None})

    with SessionLocal() as db:
        row = Repository(db).upsert_profile(owner, values)
        _dump(ApplicantProfile.model_validate(row).model_dump())


@profile_app.command("show")
def profile_show(owner: str = typer.Option(..., "--owner")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        row = Repository(db).get_profile(owner)
        if row is None:
            raise typer.BadParameter(f"no profile stored for {owner}")
        profile = ApplicantProfile.model_validate(row)
        _dump({**profile.model_dump(), "is_complete": profile.is_complete})


@app.command("generate")
def generate_cmd(
    owner: str = typer.Option(..., "--owner"),
    title: str = typer.Option("", "--title"),
    company: str = typer.Option("", "--company"),
    description: str = typer.Option("", "--description"),
    description_file: Path | None = typer.Option(None, "--description-file", exists=True, readable=True),
    contact_person: str | None = typer.Option(None, "--contact-person"),
    url: str | None = typer.Option(None, "--url"),
    deadline: str | None = typer.Option(None, "--deadline", help="ISO date, e.g. 2026-11-30"),
    job_id: str | None = typer.Option(None, "--job-id", help="Update this saved job instead of creating one"),
    from_url: bool = typer.Option(False, "--from-url", help="Prefill empty fields from the posting at --url"),
) -> None:
    """Run the full pipeline: save job, read profile, write letter, save letter."""
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    writer = LetterWriter(settings)

    values = {
        "title": title,
        "company": company,
        "description": description_file.read_text(encoding="utf-8") if description_file else description,
        "contact_person": contact_person,
        "url": url,
        "deadline": deadline,
    }
    if from_url and url:
        text = fetch_job_text(url, timeout_sec=settings.job_fetch_timeout_sec)
        draft = writer.extract_job_info(url=url, text=text)
        for key, value in draft.model_dump().items():
            if not values.get(key) and value:
                values[key] = value

    try:
        job_input = JobInput.model_validate(values)
    except ValidationError as exc:
        error = exc.errors()[0]
        hint = f"--{str(error['loc'][0]).replace('_', '-')}" if error["loc"] else None
        raise typer.BadParameter(error["msg"], param_hint=hint) from exc

    orchestrator = GenerationOrchestrator(BackendGateway(writer=writer), settings=settings)

    def _show(progress: GenerationProgress) -> None:
        typer.echo(f"[{progress.progress:3d}%] {progress.message}", err=True)

    orchestrator.tracker.subscribe(_show)
    try:
        result = asyncio.run(orchestrator.run(job_input, owner_id=owner, existing_job_id=job_id))
    except ClassifiedError as exc:
        _dump({"error": exc.to_dict()})
        raise typer.Exit(code=1) from exc

    _dump(
        {
            "job": result.job.model_dump(mode="json"),
            "letter": result.letter.model_dump(mode="json"),
            "profile_incomplete": result.profile_incomplete,
        }
    )


@jobs_app.command("list")
def jobs_list(
    owner: str = typer.Option(..., "--owner"),
    limit: int = typer.Option(20, "--limit"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        jobs = Repository(db).list_jobs(owner, limit=limit)
        _dump(
            [
                {
                    "id": job.id,
                    "title": job.title,
                    "company": job.company,
                    "deadline": job.deadline.isoformat() if job.deadline else None,
                    "updated_at": job.updated_at.isoformat() if job.updated_at else None,
                }
                for job in jobs
            ]
        )


@jobs_app.command("delete")
def jobs_delete(
    owner: str = typer.Option(..., "--owner"),
    job_id: str = typer.Option(..., "--job-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        if not Repository(db).delete_job(job_id, owner):
            raise typer.BadParameter(f"job {job_id} not found")
    _dump({"deleted": job_id})


@letters_app.command("show")
def letters_show(
    owner: str = typer.Option(..., "--owner"),
    job_id: str = typer.Option(..., "--job-id"),
) -> None:
    """Print the latest letter saved for a job."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        letter = Repository(db).find_letter(owner, job_id)
        if letter is None:
            raise typer.BadParameter(f"no letter for job {job_id}")
        typer.echo(letter.content)


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
