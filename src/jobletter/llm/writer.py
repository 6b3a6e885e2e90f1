from __future__ import annotations

import logging
import re
from datetime import date

import openai
from pydantic import ValidationError

from jobletter.config import Settings, get_settings
from jobletter.errors import GenerationRejected, GenerationTimeout, PipelineError, UpstreamUnavailable
from jobletter.llm.prompts import JOB_EXTRACTION_PROMPT, LETTER_SYSTEM_PROMPT, LETTER_USER_PROMPT
from jobletter.llm.providers import LLMProvider
from jobletter.types import ApplicantProfile, JobInput

logger = logging.getLogger(__name__)

DANISH_MONTHS = (
    "januar",
    "februar",
    "marts",
    "april",
    "maj",
    "juni",
    "juli",
    "august",
    "september",
    "oktober",
    "november",
    "december",
)
DEFAULT_CONTACT = "Rekrutteringsansvarlig"
NO_CONTENT_MESSAGE = "Ingen ansøgning blev genereret. Prøv igen."

_COMPANY_PATTERN = re.compile(r"\b(?:hos|at|join)\s+([A-ZÆØÅ][\w&./-]*(?:\s+[A-ZÆØÅ][\w&./-]*){0,3})")


def format_danish_date(value: date) -> str:
    return f"{value.day}. {DANISH_MONTHS[value.month - 1]} {value.year}"


def _signature(profile: ApplicantProfile) -> list[str]:
    lines = [profile.name or "Dit navn"]
    if profile.phone:
        lines.append(profile.phone)
    lines.append(profile.email or "Din e-mail")
    if profile.address:
        lines.append(profile.address)
    return lines


def frame_letter(body: str, *, job: JobInput, profile: ApplicantProfile, today: date) -> str:
    return "\n".join(
        [
            format_danish_date(today),
            "",
            f"Kære {job.contact_person or DEFAULT_CONTACT},",
            "",
            body.strip(),
            "",
            "Med venlig hilsen,",
            "",
            *_signature(profile),
        ]
    )


def template_letter(*, job: JobInput, profile: ApplicantProfile, today: date) -> str:
    title = job.title.strip() or "den annoncerede stilling"
    company = job.company.strip() or "jeres virksomhed"
    body = "\n\n".join(
        [
            f"Jeg skriver for at ansøge om stillingen som {title} hos {company}.",
            (
                "Med min baggrund og erfaring mener jeg, at jeg vil være et godt match til denne rolle. "
                f"Jeg har fulgt {company} gennem længere tid og er særligt interesseret i at blive en del af jeres team."
            ),
            (
                "Jeg er sikker på, at mine kvalifikationer matcher jeres behov, og jeg ser frem til muligheden "
                f"for at diskutere, hvordan jeg kan bidrage til {company}."
            ),
            "I er velkomne til at kontakte mig for yderligere information eller for at arrangere et møde.",
        ]
    )
    return frame_letter(body, job=job, profile=profile, today=today)


class LetterWriter:
    def __init__(self, settings: Settings | None = None, provider: LLMProvider | None = None):
        self.settings = settings or get_settings()
        self._provider = provider

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = LLMProvider.from_settings(self.settings)
        return self._provider

    @property
    def has_provider(self) -> bool:
        return self._provider is not None or bool(self.settings.openai_api_key)

    def write_letter(self, *, job: JobInput, profile: ApplicantProfile, today: date | None = None) -> str:
        today = today or date.today()
        fallback = self.settings.letter_fallback_enabled

        if not self.has_provider:
            if not fallback:
                raise GenerationRejected("no AI provider configured", user_message=NO_CONTENT_MESSAGE)
            logger.info("No AI provider configured; using template letter")
            return template_letter(job=job, profile=profile, today=today)

        try:
            body = self._generate_body(job=job, profile=profile)
        except PipelineError as exc:
            if not fallback:
                raise
            logger.warning("Letter generation failed (%s); using template letter", exc)
            return template_letter(job=job, profile=profile, today=today)

        if len(body.strip()) < self.settings.generation_min_chars:
            if not fallback:
                raise GenerationRejected("model returned no usable content", user_message=NO_CONTENT_MESSAGE)
            logger.warning("Model output too short (%s chars); using template letter", len(body.strip()))
            return template_letter(job=job, profile=profile, today=today)

        return frame_letter(body, job=job, profile=profile, today=today)

    def extract_job_info(self, *, url: str, text: str) -> JobInput:
        if self.has_provider and text.strip():
            prompt = JOB_EXTRACTION_PROMPT.format(job_url=url, job_text=text[:20000])
            try:
                data = self.provider.complete_json(model=self.settings.openai_model_writer, prompt=prompt)
            except openai.APIError as exc:
                logger.warning("Job extraction call failed url=%s error=%s", url, exc)
                data = {}
            if data:
                try:
                    return JobInput.model_validate({**data, "url": url})
                except ValidationError:
                    logger.warning("Invalid structured job extraction output; falling back to heuristic")
        return heuristic_job_info(url=url, text=text)

    def _generate_body(self, *, job: JobInput, profile: ApplicantProfile) -> str:
        prompt = LETTER_USER_PROMPT.format(
            title=job.title,
            company=job.company,
            description=job.description,
            name=profile.name or "Ansøgeren",
            email=profile.email,
            phone=profile.phone or "ikke oplyst",
            address=profile.address or "ikke oplyst",
            experience=profile.experience or "",
            education=profile.education or "",
            skills=profile.skills or "",
            contact_person=job.contact_person or DEFAULT_CONTACT,
        )
        try:
            response = self.provider.complete_text(
                model=self.settings.openai_model_writer,
                prompt=prompt,
                system=LETTER_SYSTEM_PROMPT,
                temperature=self.settings.openai_temperature,
            )
        except openai.APITimeoutError as exc:
            raise GenerationTimeout(f"AI request timed out: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise UpstreamUnavailable(f"AI service connection failed: {exc}") from exc
        except openai.APIError as exc:
            raise GenerationRejected(f"AI service error: {exc}", user_message=NO_CONTENT_MESSAGE) from exc
        return response.content


def heuristic_job_info(*, url: str, text: str) -> JobInput:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    title = lines[0][:255] if lines else ""
    match = _COMPANY_PATTERN.search(text)
    company = match.group(1).strip() if match else ""
    return JobInput(title=title, company=company, description="\n".join(lines[1:])[:10000], url=url)
