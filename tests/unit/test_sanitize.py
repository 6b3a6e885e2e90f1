from __future__ import annotations

from jobletter.core.sanitize import looks_malicious, sanitize_message, strip_markup


def test_strip_markup_drops_scripts() -> None:
    assert strip_markup("<p>Hej <script>alert(1)</script>verden</p>") == "Hej verden"


def test_sanitize_escapes_and_truncates() -> None:
    assert sanitize_message("Tom & Jerry") == "Tom &amp; Jerry"
    long_text = "x" * 400
    assert len(sanitize_message(long_text)) == 300
    assert sanitize_message(long_text).endswith("...")


def test_looks_malicious_sees_through_entities() -> None:
    assert looks_malicious("&lt;script&gt;alert(1)&lt;/script&gt;")
    assert looks_malicious("javascript:void(0)")
    assert looks_malicious("' UNION SELECT password FROM users")
    assert not looks_malicious("Kunne ikke gemme jobbet")
    assert not looks_malicious("")
