from __future__ import annotations

from jobletter.config import get_settings
from jobletter.db import models  # noqa: F401
from jobletter.db.base import Base
from jobletter.db.session import engine


def ensure_data_directories() -> None:
    get_settings().data_dir.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, list[str]]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)
    return {"tables": sorted(Base.metadata.tables)}
