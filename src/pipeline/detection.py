from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List


CAPTCHA_MARKERS = [
    r"captcha",
    r"\bare you a robot\b",
    r"\bi'?m not a robot\b",
    r"human verification",
    r"verify you are human",
    r"security check",
    r"Just a moment\s*\.\.\.",
    r"Enable JavaScript and cookies to continue",
    r"__cf_chl_",  # Cloudflare challenge scripts
    r"cf-challenge",
]

CAPTCHA_FRAME_RE = re.compile(
    r"<iframe[^>]+src\s*=\s*['\"][^'\"]*(recaptcha|hcaptcha|captcha|challenges\.cloudflare)",
    re.IGNORECASE,
)

BLOCK_MARKERS = [
    r"access denied",
    r"403 forbidden",
    r"404 not found",
    r"you have been blocked",
    r"request (has been|was) blocked",
    r"too many requests",
    r"rate limited",
]

BLOCK_URL_RE = re.compile(r"(error|blocked|denied)", re.IGNORECASE)


@dataclass(frozen=True)
class PageFlags:
    captcha_detected: bool = False
    blocked: bool = False
    reasons: List[str] = field(default_factory=list)


def detect_captcha(text: str | None, html: str | None = None) -> List[str]:
    reasons: List[str] = []
    blob = text or ""
    for pat in CAPTCHA_MARKERS:
        if re.search(pat, blob, flags=re.IGNORECASE):
            reasons.append(f"captcha:{pat}")
    if html and CAPTCHA_FRAME_RE.search(html):
        reasons.append("captcha:iframe")
    return reasons


def detect_block(text: str | None, url: str | None = None) -> List[str]:
    reasons: List[str] = []
    blob = text or ""
    for pat in BLOCK_MARKERS:
        if re.search(pat, blob, flags=re.IGNORECASE):
            reasons.append(f"block:{pat}")
    if url and BLOCK_URL_RE.search(url.split("?", 1)[0]):
        reasons.append("block:url")
    return reasons


def inspect_page(text: str | None, html: str | None, url: str | None) -> PageFlags:
    """Advisory CAPTCHA/block flags for a loaded page.

    Only the visible text is scanned for phrases, so script bodies mentioning
    'captcha' do not trip the flag; iframes are checked in the markup.
    """
    captcha = detect_captcha(text, html)
    block = detect_block(text, url)
    return PageFlags(captcha_detected=bool(captcha), blocked=bool(block), reasons=captcha + block)
