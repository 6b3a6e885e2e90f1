from __future__ import annotations

from datetime import date

import pytest

from jobletter.db.repositories import Repository, advance_timestamp
from jobletter.db.session import SessionLocal


def _job_values(**overrides) -> dict:
    values = {
        "title": "Marketing Manager",
        "company": "Acme A/S",
        "description": "Markedsføring.",
        "contact_person": None,
        "url": None,
        "deadline": date(2026, 11, 30),
    }
    values.update(overrides)
    return values


def test_advance_timestamp_is_strictly_increasing() -> None:
    first = advance_timestamp(None)
    far_future = first.replace(year=first.year + 1)

    assert advance_timestamp(far_future) > far_future


def test_save_job_updates_in_place() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        created = repo.save_job("owner-1", _job_values())
        created_at, first_update = created.created_at, created.updated_at

        updated = repo.save_job("owner-1", _job_values(title="Senior Marketing Manager"), created.id)

        assert updated.id == created.id
        assert updated.title == "Senior Marketing Manager"
        assert updated.created_at == created_at
        assert updated.updated_at > first_update
        assert len(repo.list_jobs("owner-1")) == 1


def test_save_job_rejects_foreign_or_unknown_id() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        job = repo.save_job("owner-1", _job_values())

        with pytest.raises(ValueError):
            repo.save_job("owner-2", _job_values(), job.id)
        with pytest.raises(ValueError):
            repo.save_job("owner-1", _job_values(), "missing")


def test_upsert_letter_keeps_one_letter_per_job() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        job = repo.save_job("owner-1", _job_values())

        first = repo.upsert_letter("owner-1", job.id, "Første udkast")
        second = repo.upsert_letter("owner-1", job.id, "Andet udkast")

        assert second.id == first.id
        assert second.content == "Andet udkast"
        assert [row.id for row in repo.list_letters_for_job(job.id)] == [first.id]


def test_update_letter_content_and_delete_job() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        job = repo.save_job("owner-1", _job_values())
        letter = repo.upsert_letter("owner-1", job.id, "Udkast")

        edited = repo.update_letter_content(letter.id, "Redigeret")
        assert edited.content == "Redigeret"
        with pytest.raises(ValueError):
            repo.update_letter_content("missing", "x")

        assert repo.delete_job(job.id, "owner-2") is False
        assert repo.delete_job(job.id, "owner-1") is True

    with SessionLocal() as db:
        repo = Repository(db)
        assert repo.get_job(job.id) is None
        assert repo.get_letter(letter.id) is None


def test_upsert_profile_only_touches_given_fields() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.upsert_profile("owner-1", {"name": "Jane Doe", "email": "jane@x.dk"})
        profile = repo.upsert_profile("owner-1", {"skills": "SEO"})

        assert profile.name == "Jane Doe"
        assert profile.skills == "SEO"
        assert profile.phone is None
