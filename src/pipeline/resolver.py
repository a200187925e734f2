"""
Entity detail resolution: canonical website, makers and site contacts.

The website cascade is an ordered list of pure strategies over a
CascadeContext; the first non-empty result wins and later strategies are
never run (the redirect strategy is the only one that navigates).
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from src.config import DEFAULT_EMAIL_TLDS, ContactSettings, ListingSettings, ResolverSettings
from src.errors import NavigationError
from src.ops_logger import OpsLogger
from src.schemas import ContactBundle, EntityDetails, PersonContact
from src.pipeline import dom_scripts
from src.pipeline.extractors import ProfileContactExtractor
from src.pipeline.fetchers.playwright import Navigator, RenderedPage, WaitStrategy
from src.pipeline.heuristics import (
    Strategy,
    ancestors,
    count_mentions,
    email_domain,
    find_emails,
    first_success,
    host_of,
    is_absolute_http,
    matches_domain,
)
from src.pipeline.rate_limit import AdaptiveRateLimiter
from src.pipeline.website_contacts import WebsiteContactExtractor


VISIT_EXACT = {"visit", "visit website", "website"}
VISIT_CONTAINS = ("visit site", "view site", "open site", "go to site")
GET_IT_EXACT = {
    "get it", "get", "try", "try it", "try it free", "try for free", "download", "download now",
    "install", "install now", "sign up", "signup", "join", "join now", "launch", "launch app",
}
GET_IT_CONTAINS = ("download", "try it", "get it", "sign up", "install")

TEAM_HEADING = "meet the team"
MAKER_LABEL_RE = re.compile(r"\bmaker\b")


@dataclass
class CascadeContext:
    page: RenderedPage
    tree: HTMLParser
    text: str
    settings: ResolverSettings
    site_base: str
    navigator: Optional[Navigator] = None
    free_email_domains: List[str] = field(default_factory=list)
    email_tlds: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MakerLink:
    name: str
    url: str
    confirmed: bool


def _text(node: Node) -> str:
    return " ".join((node.text(deep=True) or "").split()).lower()


def _href_for(node: Node) -> str:
    """href of an anchor, or of the anchor wrapping a button."""
    if node.tag == "a":
        return (node.attributes.get("href") or "").strip()
    for up in ancestors(node):
        if up.tag == "a":
            return (up.attributes.get("href") or "").strip()
    return (node.attributes.get("data-href") or "").strip()


def _is_candidate_site(href: str, s: ResolverSettings) -> bool:
    return (
        is_absolute_http(href)
        and not matches_domain(href, s.source_domains)
        and not matches_domain(href, s.placeholder_domains)
    )


def _first_cta(ctx: CascadeContext, exact: set, contains: Tuple[str, ...]) -> Optional[str]:
    for node in ctx.tree.css("a, button"):
        t = _text(node)
        if not t or not (t in exact or any(c in t for c in contains)):
            continue
        href = _href_for(node)
        if _is_candidate_site(href, ctx.settings):
            return href
    return None


# -------------------------
# Cascade strategies
# -------------------------
def visit_button(ctx: CascadeContext) -> Optional[str]:
    return _first_cta(ctx, VISIT_EXACT, VISIT_CONTAINS)


def redirect_link(ctx: CascadeContext) -> Optional[str]:
    """Follow the source site's own redirect link and keep the final URL."""
    prefix = urljoin(ctx.site_base, ctx.settings.redirect_prefix)
    target = ""
    for a in ctx.tree.css("a[href]"):
        href = urljoin(ctx.site_base, (a.attributes.get("href") or "").strip())
        if href.startswith(prefix):
            target = href
            break
    if not target or ctx.navigator is None:
        return None
    with ctx.navigator.open(target, wait=WaitStrategy.CONTENT_LOADED) as page:
        final = page.url
    if _is_candidate_site(final, ctx.settings):
        return final
    return None


def get_it_button(ctx: CascadeContext) -> Optional[str]:
    return _first_cta(ctx, GET_IT_EXACT, GET_IT_CONTAINS)


def shortest_external_link(ctx: CascadeContext) -> Optional[str]:
    s = ctx.settings
    links = []
    for a in ctx.tree.css("a[href]"):
        href = (a.attributes.get("href") or "").strip()
        if _is_candidate_site(href, s) and not matches_domain(href, s.social_domains):
            links.append(href)
    if not links:
        return None
    return min(links, key=len)


def text_patterns(settings: ResolverSettings) -> List[re.Pattern]:
    pats = [
        re.compile(r"visit us at\s+([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.I),
        re.compile(r"website\s*:\s*(https?://[^\s,]+)", re.I),
        re.compile(r"available at\s+(https?://[^\s,]+)", re.I),
        re.compile(r"check out\s+(https?://[^\s,]+)", re.I),
        re.compile(r"official site\s*:\s*(https?://[^\s,]+)", re.I),
        re.compile(r"homepage\s*:\s*(https?://[^\s,]+)", re.I),
        re.compile(r"website\s*:\s*([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.I),
    ]
    for tld in settings.text_tlds:
        pats.append(re.compile(
            r"\b((?:https?://)?[a-zA-Z0-9][a-zA-Z0-9-]*\." + re.escape(tld) + r"(?:/[^\s,]*)?)\b", re.I))
    return pats


def text_mention(ctx: CascadeContext) -> Optional[str]:
    s = ctx.settings
    for pat in text_patterns(s):
        m = pat.search(ctx.text or "")
        if not m:
            continue
        url = m.group(1).rstrip(".)")
        if not url.lower().startswith("http"):
            url = "https://" + url
        if matches_domain(url, s.source_domains) or matches_domain(url, s.placeholder_domains):
            continue
        if matches_domain(url, s.text_denylist) and not _corroborated(ctx, host_of(url)):
            print(f"  ℹ️  Rejecting {url}: denylisted and not corroborated")
            return None
        return url
    return None


def _corroborated(ctx: CascadeContext, domain: str) -> bool:
    s = ctx.settings
    if count_mentions(ctx.text, domain) >= s.denylist_min_mentions:
        return True
    header_links = ctx.page.evaluate(dom_scripts.HEADER_LINK_COUNT, {"domain": domain, "top": s.header_top_px})
    return int(header_links or 0) >= s.denylist_min_header_links


def email_domain_site(ctx: CascadeContext) -> Optional[str]:
    free = {d.lower() for d in ctx.free_email_domains}
    for e in find_emails(ctx.text, ctx.email_tlds or DEFAULT_EMAIL_TLDS):
        dom = email_domain(e)
        if dom and dom not in free and not matches_domain("https://" + dom, ctx.settings.source_domains):
            return "https://" + dom
    return None


WEBSITE_CASCADE: List[Strategy] = [
    ("visit_button", visit_button),
    ("redirect_link", redirect_link),
    ("get_it_button", get_it_button),
    ("shortest_external_link", shortest_external_link),
    ("text_mention", text_mention),
    ("email_domain", email_domain_site),
]


# -------------------------
# Makers
# -------------------------
def find_team_scope(tree: HTMLParser) -> Optional[Node]:
    """Parent of the "Meet the team" heading (innermost div when no h2/h3 matches)."""
    for h in tree.css("h2, h3"):
        if TEAM_HEADING in _text(h):
            return h.parent
    innermost = None
    for d in tree.css("div"):
        if TEAM_HEADING in _text(d):
            innermost = d  # document order: later matches are deeper
    return innermost.parent if innermost is not None else None


def discover_makers(tree: HTMLParser, site_base: str, identity_prefix: str, cap: int) -> List[MakerLink]:
    scope = find_team_scope(tree)
    anchors = (scope.css(f'a[href^="{identity_prefix}"]') if scope is not None
               else tree.css(f'a[href^="{identity_prefix}"]'))
    makers: List[MakerLink] = []
    seen = set()
    for a in anchors:
        href = (a.attributes.get("href") or "").strip()
        url = urljoin(site_base, href.split("?", 1)[0])
        if url in seen:
            continue
        seen.add(url)
        parent = a.parent
        confirmed = bool(parent is not None and any(
            MAKER_LABEL_RE.search(_text(n)) for n in parent.css("span, div")))
        name = " ".join((a.text(deep=True) or "").split())
        if confirmed or len(makers) < cap:
            makers.append(MakerLink(name=name, url=url, confirmed=confirmed))
    # stable: confirmed first, discovery order otherwise
    makers.sort(key=lambda m: not m.confirmed)
    return makers[:cap]


class EntityResolver:
    """Resolve one product page into EntityDetails. ``resolve`` never raises."""

    def __init__(
        self,
        navigator: Navigator,
        profile_extractor: ProfileContactExtractor,
        website_extractor: WebsiteContactExtractor,
        rate_limiter: AdaptiveRateLimiter,
        settings: Optional[ResolverSettings] = None,
        listing: Optional[ListingSettings] = None,
        contacts: Optional[ContactSettings] = None,
        *,
        ops: Optional[OpsLogger] = None,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        self.navigator = navigator
        self.profile_extractor = profile_extractor
        self.website_extractor = website_extractor
        self.rate_limiter = rate_limiter
        self.settings = settings or ResolverSettings()
        self.listing = listing or ListingSettings()
        self.contacts = contacts or ContactSettings()
        self.ops = ops
        self._sleep = sleeper

    def resolve(self, entity_url: str) -> EntityDetails:
        try:
            return self._resolve(entity_url)
        except NavigationError as e:
            print(f"  ⚠️  Entity page unavailable: {entity_url} ({e.kind.value})")
            self.rate_limiter.record_failure()
            if self.ops:
                self.ops.event("entity_failed", url=entity_url, error=e)
        except Exception as e:
            print(f"  ⚠️  Entity resolution failed: {entity_url} ({e})")
            self.rate_limiter.record_failure()
            if self.ops:
                self.ops.event("entity_failed", url=entity_url, error=e)
        return EntityDetails()

    def _resolve(self, entity_url: str) -> EntityDetails:
        with self.navigator.open(entity_url, wait=WaitStrategy.CONTENT_LOADED) as page:
            tree = page.snapshot()
            ctx = CascadeContext(
                page=page,
                tree=tree,
                text=page.text(),
                settings=self.settings,
                site_base=self.listing.site_base,
                navigator=self.navigator,
                free_email_domains=list(self.contacts.free_email_domains),
                email_tlds=list(self.contacts.email_tlds),
            )
            hit = first_success(WEBSITE_CASCADE, ctx, on_error=self._strategy_failed(entity_url))
            makers = discover_makers(tree, self.listing.site_base, self.settings.identity_prefix,
                                     self.settings.max_makers_per_entity)

        details = EntityDetails()
        if hit:
            details.canonical_website = hit.value
            details.website_strategy = hit.strategy
            print(f"  🌐 Website via {hit.strategy}: {hit.value}")
            if self.ops:
                self.ops.event("website_resolved", url=entity_url, website=hit.value, strategy=hit.strategy)
            details.site_contact_info = self.resolve_site_contacts(hit.value)
        else:
            print("  ℹ️  No product website found")

        print(f"  👥 {len(makers)} maker(s) to process")
        for m in makers:
            profile = self.profile_extractor.extract(m.url)
            details.contacts.append(PersonContact.from_profile(m.name, m.url, profile, m.confirmed))
            self.rate_limiter.wait()
        return details

    def resolve_site_contacts(self, website: str) -> ContactBundle:
        """Website-mode extraction with backoff retries while the bundle stays empty."""
        bundle = self.website_extractor.extract(website)
        retry = 0
        while bundle.is_empty() and retry < self.settings.website_retries:
            retry += 1
            wait_ms = self.settings.retry_backoff_ms * retry
            print(f"  🔁 Website contacts empty, retry {retry}/{self.settings.website_retries} in {wait_ms}ms")
            self._sleep(wait_ms / 1000.0)
            bundle = self.website_extractor.extract(website)
        return bundle

    def _strategy_failed(self, url: str):
        def _log(step: str, error: Exception) -> None:
            print(f"  ⚠️  Website strategy {step} failed: {error}")
            if self.ops:
                self.ops.event("step_failed", url=url, error=error, step=step)
        return _log
