from __future__ import annotations

from datetime import date

import httpx
import openai
import pytest

from jobletter.config import Settings
from jobletter.errors import GenerationRejected, UpstreamUnavailable
from jobletter.llm.writer import LetterWriter, format_danish_date, heuristic_job_info
from jobletter.types import ApplicantProfile, JobInput, ModelResponse

TODAY = date(2026, 10, 19)
BODY = (
    "Med fem års erfaring inden for digital markedsføring og kampagnestyring "
    "ser jeg frem til at styrke Acme A/S' position på det danske marked."
)


class FakeProvider:
    def __init__(self, *, text: str = BODY, error: Exception | None = None, payload: dict | None = None):
        self.text = text
        self.error = error
        self.payload = payload or {}
        self.prompts: list[dict] = []

    def complete_text(self, **kwargs) -> ModelResponse:
        self.prompts.append(kwargs)
        if self.error is not None:
            raise self.error
        return ModelResponse(content=self.text)

    def complete_json(self, **kwargs) -> dict:
        return self.payload


def _job(**overrides) -> JobInput:
    values = {"title": "Marketing Manager", "company": "Acme A/S", "description": "Markedsføring."}
    values.update(overrides)
    return JobInput(**values)


def _profile() -> ApplicantProfile:
    return ApplicantProfile(name="Jane Doe", email="jane@x.dk", phone="12345678", skills="SEO")


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/responses"))


def test_danish_date_format() -> None:
    assert format_danish_date(TODAY) == "19. oktober 2026"
    assert format_danish_date(date(2027, 5, 1)) == "1. maj 2027"


def test_template_letter_without_api_key() -> None:
    writer = LetterWriter(Settings(openai_api_key=""))

    letter = writer.write_letter(job=_job(), profile=_profile(), today=TODAY)

    lines = letter.splitlines()
    assert lines[0] == "19. oktober 2026"
    assert "Kære Rekrutteringsansvarlig," in lines
    assert "stillingen som Marketing Manager hos Acme A/S" in letter
    assert lines[-3:] == ["Jane Doe", "12345678", "jane@x.dk"]


def test_model_output_is_framed_with_contact_person() -> None:
    provider = FakeProvider()
    writer = LetterWriter(Settings(openai_api_key=""), provider=provider)

    letter = writer.write_letter(job=_job(contact_person="Mette Hansen"), profile=_profile(), today=TODAY)

    assert "Kære Mette Hansen," in letter
    assert BODY in letter
    assert "Med venlig hilsen," in letter
    assert "KONTAKTPERSON: Mette Hansen" in provider.prompts[0]["prompt"]
    assert "KOMPETENCER:\nSEO" in provider.prompts[0]["prompt"]


def test_short_output_falls_back_to_template() -> None:
    writer = LetterWriter(Settings(openai_api_key=""), provider=FakeProvider(text="Hej."))

    letter = writer.write_letter(job=_job(), profile=_profile(), today=TODAY)

    assert "Jeg skriver for at ansøge om stillingen" in letter


def test_short_output_rejected_without_fallback() -> None:
    settings = Settings(openai_api_key="", letter_fallback_enabled=False)
    writer = LetterWriter(settings, provider=FakeProvider(text=""))

    with pytest.raises(GenerationRejected):
        writer.write_letter(job=_job(), profile=_profile(), today=TODAY)


def test_missing_provider_rejected_without_fallback() -> None:
    writer = LetterWriter(Settings(openai_api_key="", letter_fallback_enabled=False))

    with pytest.raises(GenerationRejected):
        writer.write_letter(job=_job(), profile=_profile(), today=TODAY)


def test_connection_error_maps_to_upstream_unavailable() -> None:
    settings = Settings(openai_api_key="", letter_fallback_enabled=False)
    writer = LetterWriter(settings, provider=FakeProvider(error=_connection_error()))

    with pytest.raises(UpstreamUnavailable):
        writer.write_letter(job=_job(), profile=_profile(), today=TODAY)


def test_connection_error_uses_template_when_fallback_enabled() -> None:
    writer = LetterWriter(Settings(openai_api_key=""), provider=FakeProvider(error=_connection_error()))

    letter = writer.write_letter(job=_job(), profile=_profile(), today=TODAY)

    assert letter.startswith("19. oktober 2026")


def test_extract_job_info_prefers_structured_output() -> None:
    provider = FakeProvider(
        payload={
            "title": "Data Engineer",
            "company": "Nordlys ApS",
            "description": "Byg datapipelines.",
            "contact_person": "",
            "deadline": "2026-11-30",
        }
    )
    writer = LetterWriter(Settings(openai_api_key=""), provider=provider)

    draft = writer.extract_job_info(url="https://jobs.example.dk/42", text="Data Engineer hos Nordlys ApS")

    assert draft.title == "Data Engineer"
    assert draft.contact_person is None
    assert draft.deadline == date(2026, 11, 30)
    assert draft.url == "https://jobs.example.dk/42"


def test_heuristic_job_info() -> None:
    text = "Marketing Manager\n\nBliv en del af teamet hos Acme A/S i Aarhus.\nVi tilbyder gode vilkår."

    draft = heuristic_job_info(url="https://jobs.example.dk/1", text=text)

    assert draft.title == "Marketing Manager"
    assert draft.company == "Acme A/S"
    assert draft.description.startswith("Bliv en del af teamet")
