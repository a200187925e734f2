from datetime import date

import pytest

from src.pipeline.dates import extract_date_from_url, leaderboard_url_for, run_date_for


@pytest.mark.parametrize("url,expected", [
    ("https://www.producthunt.com/leaderboard/daily/2025/3/7/all", "2025-03-07"),
    ("https://www.producthunt.com/leaderboard/daily/2024/12/31/all?ref=x", "2024-12-31"),
    ("https://www.producthunt.com/leaderboard/weekly/2025/10/all", ""),
    ("https://www.producthunt.com/", ""),
    ("/leaderboard/daily/2025/3/7/all", ""),
    ("", ""),
    (None, ""),
])
def test_extract_date_from_url(url, expected):
    assert extract_date_from_url(url) == expected


def test_leaderboard_url_is_not_zero_padded():
    url = leaderboard_url_for(date(2025, 3, 7), "https://www.producthunt.com/")
    assert url == "https://www.producthunt.com/leaderboard/daily/2025/3/7/all"
    assert extract_date_from_url(url) == "2025-03-07"


def test_run_date_falls_back_to_today():
    assert run_date_for("https://www.producthunt.com/", today=date(2026, 1, 2)) == "2026-01-02"
    assert run_date_for("https://www.producthunt.com/leaderboard/daily/2025/3/7/all",
                        today=date(2026, 1, 2)) == "2025-03-07"
