from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from selectolax.parser import HTMLParser

from src.config import ContactSettings, NavigationSettings
from src.errors import NavigationError
from src.ops_logger import OpsLogger
from src.schemas import ContactBundle
from src.pipeline import dom_scripts
from src.pipeline.fetchers.playwright import Navigator, RenderedPage, WaitStrategy
from src.pipeline.heuristics import (
    EMAIL_TOKEN_RE,
    choose_best_email,
    classify_link,
    filter_email_candidates,
    guarded,
    host_of,
    is_absolute_http,
    is_linkedin_url,
    is_twitter_url,
    matches_domain,
    merge_first_non_empty,
    origin_of,
    sanitize_mailto,
    scoped_anchors,
)


WEBSITE_COOKIES = {"visited_before": "true"}


class WebsiteContactExtractor:
    """ContactBundle for a product website.

    Three passes over the same tab are merged per field with precedence
    contact page > scrolled footer > initial load. Each pass runs the layered
    extraction in ``extract_single``; a failing layer only empties its own
    fields. ``extract`` never raises.
    """

    def __init__(
        self,
        navigator: Navigator,
        settings: Optional[ContactSettings] = None,
        navigation: Optional[NavigationSettings] = None,
        *,
        ops: Optional[OpsLogger] = None,
    ) -> None:
        self.navigator = navigator
        self.settings = settings or ContactSettings()
        self.navigation = navigation or navigator.settings
        self.ops = ops
        self._current_url = ""

    # -------------------------
    # Public entry points
    # -------------------------
    def extract(self, url: str) -> ContactBundle:
        self._current_url = url
        try:
            with self.navigator.open(url, wait=WaitStrategy.CONTENT_LOADED, cookies=WEBSITE_COOKIES) as page:
                return self.extract_from_page(page)
        except NavigationError as e:
            print(f"  ⚠️  Website unavailable: {url} ({e.kind.value})")
            if self.ops:
                self.ops.event("navigation_failed", url=url, error=e, mode="website")
        except Exception as e:
            print(f"  ⚠️  Website extraction failed: {url} ({e})")
            if self.ops:
                self.ops.event("step_failed", url=url, error=e, step="website")
        return ContactBundle()

    def extract_from_page(self, page: RenderedPage) -> ContactBundle:
        start_url = page.url
        self._current_url = start_url
        contact_link = guarded("contact_link", lambda: self.find_contact_link(page), "", self._step_failed)

        from_contact = ContactBundle()
        back_on_start = True
        if contact_link:
            from_contact = guarded("contact_page", lambda: self._visit_contact_page(page, contact_link),
                                   ContactBundle(), self._step_failed)
            back_on_start = self._return_to(page, start_url)

        initial = footer = ContactBundle()
        if back_on_start:
            initial = guarded("initial_pass", lambda: self.extract_single(page), ContactBundle(), self._step_failed)
            footer = guarded("footer_pass", lambda: self._footer_pass(page), ContactBundle(), self._step_failed)
        else:
            print(f"  ⚠️  Could not return to {start_url}; skipping initial and footer passes")

        merged = merge_first_non_empty(from_contact, footer, initial)
        if not merged.contact_page_url and contact_link:
            merged.contact_page_url = contact_link
        if not merged.email:
            merged.email = guarded("page_source", lambda: self.scan_page_source(page.html()), "", self._step_failed)
        return merged

    # -------------------------
    # Passes
    # -------------------------
    def find_contact_link(self, page: RenderedPage) -> str:
        href = page.evaluate(dom_scripts.FIND_CONTACT_LINK) or ""
        if not href or href.lower().startswith(("#", "javascript:")):
            return ""
        return urljoin(page.url, href)

    def _visit_contact_page(self, page: RenderedPage, contact_url: str) -> ContactBundle:
        page.goto(contact_url, WaitStrategy.CONTENT_LOADED, self.navigation.attempt_timeout_ms)
        bundle = self.extract_single(page)
        if not bundle.contact_page_url:
            bundle.contact_page_url = contact_url
        return bundle

    def _return_to(self, page: RenderedPage, start_url: str) -> bool:
        """Put the tab back on ``start_url``; False when both go_back and goto fail."""
        if page.url == start_url:
            return True
        timeout = self.navigation.attempt_timeout_ms
        try:
            page.go_back(WaitStrategy.CONTENT_LOADED, timeout)
            return True
        except Exception as e:
            self._step_failed("go_back", e)
        try:
            page.goto(start_url, WaitStrategy.CONTENT_LOADED, timeout)
            return True
        except Exception as e:
            self._step_failed("return_to_start", e)
            return False

    def _footer_pass(self, page: RenderedPage) -> ContactBundle:
        s = self.settings
        height = page.scroll_height()
        for i in range(1, s.scroll_steps + 1):
            page.scroll_to(int(height * i / s.scroll_steps))
            page.pause(s.scroll_step_pause_ms)
        page.pause(s.footer_settle_ms)
        return self.extract_single(page)

    def extract_single(self, page: RenderedPage) -> ContactBundle:
        """Layered extraction from whatever the tab currently shows."""
        on_error = self._step_failed
        page_url = page.url
        tree = page.snapshot()

        b = guarded("link_scan", lambda: self.scan_links(tree, page_url), ContactBundle(), on_error)

        if not b.email:
            cands = guarded("email_candidates", lambda: page.evaluate(
                dom_scripts.EMAIL_CANDIDATES, {"footer": self.settings.scope.css_selectors()}) or [], [], on_error)
            b.email = self.best_email(cands)

        if not b.twitter or not b.linkedin:
            icons = guarded("social_icons", lambda: page.evaluate(dom_scripts.SOCIAL_ICON_LINKS) or {}, {}, on_error)
            self._apply_social(b, icons)

        if b.is_empty():
            scan = guarded("last_resort", lambda: page.evaluate(dom_scripts.LAST_RESORT_SCAN) or {}, {}, on_error)
            self._apply_scan(b, scan, page_url)

        if not (b.email and b.twitter and b.linkedin):
            scan = guarded("dom_patterns", lambda: page.evaluate(dom_scripts.DOM_PATTERN_SCAN) or {}, {}, on_error)
            self._apply_scan(b, scan, page_url)

        if not b.email and page_url:
            b.email = guarded("domain_patterns", lambda: self.synthesize_email(page_url, page.text()), "", on_error)

        b.site_url = guarded("site_url", lambda: self.refine_site_url(page), "", on_error)
        return b

    # -------------------------
    # Layers
    # -------------------------
    def scan_links(self, tree: HTMLParser, page_url: str) -> ContactBundle:
        """Classify footer/contact-scoped anchors (all anchors when none are scoped)."""
        anchors = scoped_anchors(tree, self.settings.scope) or tree.css("a")
        b = ContactBundle()
        for a in anchors:
            href = (a.attributes.get("href") or "").strip()
            kind = classify_link(href, a.text(deep=True), a.html or "")
            if kind == "email" and not b.email:
                b.email = self.best_email([sanitize_mailto(href)])
            elif kind == "twitter" and not b.twitter:
                b.twitter = href
            elif kind == "linkedin" and not b.linkedin:
                b.linkedin = href
            elif kind == "contact" and not b.contact_page_url:
                b.contact_page_url = urljoin(page_url, href) if page_url else href
        return b

    def best_email(self, candidates: List[str]) -> str:
        s = self.settings
        kept = filter_email_candidates(
            candidates,
            tlds=s.email_tlds,
            placeholder_domains=s.placeholder_email_domains,
            junk_local_parts=s.junk_local_parts,
            max_length=s.max_email_length,
        )
        return choose_best_email(kept, s.free_email_domains, s.preferred_local_parts)

    def _apply_scan(self, b: ContactBundle, scan: Dict[str, Any], page_url: str) -> None:
        if not b.email:
            b.email = self.best_email([str(e) for e in (scan.get("emails") or [])])
        self._apply_social(b, scan)
        contact = str(scan.get("contact") or "")
        if not b.contact_page_url and contact:
            b.contact_page_url = urljoin(page_url, contact) if page_url else contact

    @staticmethod
    def _apply_social(b: ContactBundle, found: Dict[str, Any]) -> None:
        # DOM scripts match loosely; only accept real social hosts.
        twitter = str(found.get("twitter") or "")
        linkedin = str(found.get("linkedin") or "")
        if not b.twitter and is_twitter_url(twitter):
            b.twitter = twitter
        if not b.linkedin and is_linkedin_url(linkedin):
            b.linkedin = linkedin

    def synthesize_email(self, page_url: str, visible_text: str) -> str:
        """Canonical local-parts at the site's domain, only if literally present in the text."""
        domain = host_of(page_url)
        if not domain:
            return ""
        text = (visible_text or "").lower()
        for local in self.settings.synthesized_local_parts:
            candidate = f"{local}@{domain}"
            if candidate in text:
                return candidate
        return ""

    def refine_site_url(self, page: RenderedPage) -> str:
        s = self.settings
        c = page.evaluate(dom_scripts.SITE_URL_CANDIDATES) or {}
        url = next((str(c.get(k)) for k in ("header", "canonical", "og", "meta") if is_absolute_http(str(c.get(k) or ""))), "")
        if not url:
            url = str(c.get("origin") or "") or origin_of(page.url)
        if url and matches_domain(url, s.site_denylist):
            host = host_of(url)
            corr = page.evaluate(dom_scripts.SITE_CORROBORATION, {"host": host, "top": s.site_top_px}) or {}
            mentions = int(corr.get("headerMentions") or 0)
            top_links = int(corr.get("topLinks") or 0)
            if mentions < s.site_min_header_mentions and top_links < s.site_min_top_links:
                print(f"  ℹ️  Discarding generic site URL {url} (header mentions={mentions}, top links={top_links})")
                return ""
        return url

    def scan_page_source(self, html: str) -> str:
        tokens = [m.group(0) for m in EMAIL_TOKEN_RE.finditer(html or "")]
        return self.best_email(tokens)

    def _step_failed(self, step: str, error: Exception) -> None:
        if self.ops:
            self.ops.event("step_failed", url=self._current_url, error=error, step=step)
