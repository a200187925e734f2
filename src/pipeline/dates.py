from __future__ import annotations

import re
from datetime import date
from typing import Optional

LEADERBOARD_RE = re.compile(r"/leaderboard/daily/([0-9]{4})/([0-9]{1,2})/([0-9]{1,2})/all")


def extract_date_from_url(url: Optional[str]) -> str:
    """``.../leaderboard/daily/2025/3/7/all`` -> ``"2025-03-07"``; ``""`` when absent."""
    if not url or not url.startswith(("http://", "https://")):
        return ""
    m = LEADERBOARD_RE.search(url)
    if not m:
        return ""
    year, month, day = m.groups()
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def leaderboard_url_for(day: date, site_base: str = "https://www.producthunt.com") -> str:
    """Daily leaderboard URL (no zero padding, as the site links it)."""
    return f"{site_base.rstrip('/')}/leaderboard/daily/{day.year}/{day.month}/{day.day}/all"


def run_date_for(url: Optional[str], today: Optional[date] = None) -> str:
    """Extraction date for a run: the leaderboard date, else today."""
    return extract_date_from_url(url) or (today or date.today()).isoformat()
