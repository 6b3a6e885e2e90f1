"""Text sanitising and security-indicator detection for user-facing messages."""

from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup

_SECURITY_PATTERN = re.compile(
    r"<\s*/?\s*script"
    r"|javascript\s*:"
    r"|\bon(?:error|load|click|mouseover)\s*="
    r"|\bxss\b|cross[- ]site"
    r"|\bcsrf\b|\bxsrf\b|request forgery|forged request"
    r"|injection|union\s+select|drop\s+table",
    re.I,
)
_WHITESPACE = re.compile(r"\s+")
_MAX_MESSAGE_CHARS = 300


def looks_malicious(text: str) -> bool:
    """Return True when ``text`` carries injection, XSS or forged-request markers."""
    if not text:
        return False
    return bool(_SECURITY_PATTERN.search(text)) or bool(_SECURITY_PATTERN.search(html.unescape(text)))


def strip_markup(text: str) -> str:
    """Drop tags and executable content, keeping only visible text."""
    if not text:
        return ""
    soup = BeautifulSoup(text, "html.parser")
    for tag in soup(["script", "style", "noscript", "iframe", "object", "embed"]):
        tag.extract()
    return _WHITESPACE.sub(" ", soup.get_text(" ")).strip()


def sanitize_message(text: str, *, limit: int = _MAX_MESSAGE_CHARS) -> str:
    """Plain, HTML-escaped text safe to hand to any renderer."""
    cleaned = strip_markup(text)
    if len(cleaned) > limit:
        cleaned = cleaned[: limit - 3].rstrip() + "..."
    return html.escape(cleaned, quote=True)
