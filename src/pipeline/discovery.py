"""
Listing discovery: product links from an infinitely scrolling leaderboard.

The listing is loaded once, scrolled until the page height stops growing (or
a scroll ceiling is reached) and then read in two passes: a static pass over
the rendered snapshot and, only when that finds too few items, a live-DOM
pass over the looser fallback link pattern.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Set
from urllib.parse import urljoin, urlparse, urlunparse

from selectolax.parser import HTMLParser

from src.config import ListingSettings, NavigationSettings
from src.ops_logger import OpsLogger
from src.schemas import ListingEntity
from src.pipeline import dom_scripts
from src.pipeline.fetchers.playwright import Navigator, RenderedPage, WaitStrategy


NAME_CHILD_SELECTOR = "h3, h4, div[class*=name], div[class*=title]"


def _normalize_url(u: str) -> str:
    """Drop query/fragment; keep path as-is."""
    try:
        p = urlparse(u)
        return urlunparse(p._replace(query="", fragment=""))
    except ValueError:
        return u


def _clean_text(s: Optional[str]) -> str:
    return " ".join((s or "").split())


def extract_primary(tree: HTMLParser, site_base: str, entity_prefix: str) -> List[ListingEntity]:
    """Entity anchors from a static snapshot (``a[href^=entity_prefix]``)."""
    out: List[ListingEntity] = []
    seen: Set[str] = set()
    for a in tree.css(f'a[href^="{entity_prefix}"]'):
        href = (a.attributes.get("href") or "").strip()
        if not href:
            continue
        url = _normalize_url(urljoin(site_base, href))
        if url in seen:
            continue
        name = _clean_text(a.text(deep=True))
        if not name:
            child = a.css_first(NAME_CHILD_SELECTOR)
            name = _clean_text(child.text(deep=True)) if child else ""
        if not name:
            continue
        seen.add(url)
        out.append(ListingEntity(name=name, source_url=url))
    return out


def extract_fallback(page: RenderedPage, site_base: str, fragment: str) -> List[ListingEntity]:
    """Entity links gathered from the live DOM (looser pattern)."""
    out: List[ListingEntity] = []
    for item in page.evaluate(dom_scripts.LISTING_FALLBACK_LINKS, fragment) or []:
        href = (item.get("href") or "").strip()
        name = _clean_text(item.get("name"))
        if not href or not name:
            continue
        url = _normalize_url(urljoin(site_base, href))
        if fragment not in urlparse(url).path:
            continue
        out.append(ListingEntity(name=name, source_url=url))
    return out


class ListingDiscovery:
    def __init__(
        self,
        navigator: Navigator,
        settings: Optional[ListingSettings] = None,
        navigation: Optional[NavigationSettings] = None,
        *,
        ops: Optional[OpsLogger] = None,
    ) -> None:
        self.navigator = navigator
        self.settings = settings or ListingSettings()
        self.navigation = navigation or navigator.settings
        self.ops = ops
        self.last_scroll_count = 0

    def discover(self, listing_url: Optional[str] = None, max_items: Optional[int] = None) -> Iterator[ListingEntity]:
        """Lazy, finite iterator of unique entities in first-seen order.

        Nothing is loaded until the first ``next()``; the tab is closed
        before the first item is yielded.
        """
        url = listing_url or self.settings.target_url
        limit = self.settings.max_products if max_items is None else max_items
        entities = self._collect(url)
        yield from entities[:limit]

    def _collect(self, url: str) -> List[ListingEntity]:
        s = self.settings
        print(f"🔎 Loading listing: {url}")
        with self.navigator.open(url, wait=WaitStrategy.CONTENT_LOADED,
                                 timeout_ms=self.navigation.listing_timeout_ms) as page:
            page.pause(self.navigation.settle_ms)
            self.last_scroll_count = self._scroll_until_stable(page)
            found = extract_primary(page.snapshot(), s.site_base, s.entity_prefix)
            print(f"  Primary pass: {len(found)} entities after {self.last_scroll_count} scrolls")
            if len(found) < s.min_expected:
                extra = extract_fallback(page, s.site_base, s.fallback_fragment)
                print(f"  Fallback pass: {len(extra)} candidate links")
                found = found + extra

        unique: List[ListingEntity] = []
        seen: Set[str] = set()
        for e in found:
            if e.source_url in seen:
                continue
            seen.add(e.source_url)
            unique.append(e)
        if self.ops:
            self.ops.event("listing_discovered", url=url, count=len(unique), scrolls=self.last_scroll_count)
        return unique

    def _scroll_until_stable(self, page: RenderedPage) -> int:
        """Scroll to the bottom until the height is unchanged for N rounds or the ceiling is hit."""
        s = self.settings
        stable = 0
        scrolls = 0
        height = page.scroll_height()
        while scrolls < s.max_scrolls:
            page.scroll_to(height)
            page.pause(s.scroll_pause_ms)
            scrolls += 1
            new_height = page.scroll_height()
            if new_height == height:
                stable += 1
                if stable >= s.stable_rounds:
                    break
            else:
                stable = 0
            height = new_height
        return scrolls
