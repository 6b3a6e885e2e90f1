from __future__ import annotations

import logging

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)
_BOILERPLATE_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "form", "svg"]


def fetch_job_text(url: str, timeout_sec: int = 30) -> str:
    """Visible text of a job posting page, or "" when it cannot be fetched."""
    if not url.lower().startswith(("http://", "https://")):
        logger.warning("Refusing to fetch non-http job URL %s", url)
        return ""

    try:
        response = requests.get(url, timeout=timeout_sec, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch job URL %s: %s", url, exc)
        return ""

    soup = BeautifulSoup(response.text, "html.parser")
    for tag in soup(_BOILERPLATE_TAGS):
        tag.extract()

    root = soup.find("main") or soup.find("article") or soup
    lines = [line.strip() for line in root.get_text("\n").splitlines() if line.strip()]
    return "\n".join(lines)
