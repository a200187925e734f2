from __future__ import annotations

from typing import Optional

from selectolax.parser import HTMLParser

from src.config import ContactSettings
from src.errors import NavigationError
from src.ops_logger import OpsLogger
from src.schemas import ProfileContact
from src.pipeline.fetchers.playwright import Navigator, RenderedPage, WaitStrategy
from src.pipeline.heuristics import (
    extract_twitter_handle,
    find_emails,
    is_linkedin_url,
    is_twitter_url,
    sanitize_mailto,
)


PROFILE_LINK_SELECTOR = (
    'a[href*="twitter.com"], a[href*="x.com"], a[href*="linkedin.com"], '
    'a[href^="mailto:"], a[href*="/twitter"], a[href*="/linkedin"]'
)


class ProfileContactExtractor:
    """Email / Twitter handle / LinkedIn URL from a person's profile page.

    Layers, cheapest first:
    - social and mailto anchors in the rendered snapshot
    - email-shaped tokens in the snapshot's body text (cleaned at the TLD boundary)
    - the same scan over live ``innerText`` (content hidden from the snapshot)

    ``extract`` never raises; failures give an empty ProfileContact.
    """

    def __init__(self, navigator: Navigator, settings: Optional[ContactSettings] = None,
                 *, ops: Optional[OpsLogger] = None) -> None:
        self.navigator = navigator
        self.settings = settings or ContactSettings()
        self.ops = ops

    def extract(self, url: str) -> ProfileContact:
        try:
            with self.navigator.open(url, wait=WaitStrategy.CONTENT_LOADED) as page:
                return self.extract_from_page(page)
        except NavigationError as e:
            print(f"  ⚠️  Profile unavailable: {url} ({e.kind.value})")
            if self.ops:
                self.ops.event("navigation_failed", url=url, error=e, mode="profile")
        except Exception as e:
            print(f"  ⚠️  Profile extraction failed: {url} ({e})")
            if self.ops:
                self.ops.event("step_failed", url=url, error=e, step="profile")
        return ProfileContact()

    def extract_from_page(self, page: RenderedPage) -> ProfileContact:
        tree = page.snapshot()
        result = self.scan_links(tree)
        if not result.email:
            body = tree.body
            result.email = self._first_email(body.text(separator=" ") if body else "")
        if not result.email:
            result.email = self._first_email(page.text())
        return result

    def scan_links(self, tree: HTMLParser) -> ProfileContact:
        found = ProfileContact()
        for a in tree.css(PROFILE_LINK_SELECTOR):
            href = (a.attributes.get("href") or "").strip()
            low = href.lower()
            if not found.email and low.startswith("mailto:"):
                found.email = sanitize_mailto(href)
            elif not found.social_handle and is_twitter_url(href):
                found.social_handle = extract_twitter_handle(href)
            elif not found.linkedin_url and is_linkedin_url(href):
                found.linkedin_url = href
        return found

    def _first_email(self, text: str) -> str:
        emails = find_emails(text or "", self.settings.email_tlds)
        return emails[0] if emails else ""
