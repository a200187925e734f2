"""
Shared heuristics for website and contact resolution.

Pure helpers only: strategy combinators, email cleanup and ranking, social
link classification and footer/contact scope matching over selectolax nodes.
Nothing here touches the browser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar
from urllib.parse import urlparse

from selectolax.parser import HTMLParser, Node

from src.config import DEFAULT_EMAIL_TLDS, ScopePredicates
from src.schemas import ContactBundle


T = TypeVar("T")

# Loose token finder; trailing noise is trimmed by clean_email().
EMAIL_TOKEN_RE = re.compile(r"[a-zA-Z0-9._-]+@[a-zA-Z0-9._-]+\.[a-zA-Z0-9._-]+")
# Strict shape check for an already-cleaned address.
EMAIL_RE = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE)

TWITTER_HOSTS = ("twitter.com", "x.com")
LINKEDIN_HOSTS = ("linkedin.com",)
TWITTER_RESERVED = {"intent", "share", "home", "i", "search", "hashtag", "login", "signup"}
TWITTER_ICON_HINTS = ("fa-twitter", "fa-x-twitter", "twitter-icon", "icon-twitter", "x-logo", "x-icon", "twitter.svg", "x.svg")
LINKEDIN_ICON_HINTS = ("fa-linkedin", "linkedin-icon", "icon-linkedin", "linkedin.svg", "li-icon")
CONTACT_TEXT = ("contact", "get in touch", "reach out")
CONTACT_PATHS = ("/contact", "/about", "/support")


@dataclass(frozen=True)
class StrategyHit:
    strategy: str
    value: str


Strategy = Tuple[str, Callable[[T], Optional[str]]]


def first_success(
    strategies: Sequence[Strategy],
    ctx: T,
    on_error: Optional[Callable[[str, Exception], None]] = None,
) -> Optional[StrategyHit]:
    """Run strategies in order and return the first non-empty result.

    A strategy that raises counts as a miss; ``on_error`` receives the step
    name and the exception.
    """
    for name, fn in strategies:
        try:
            value = fn(ctx)
        except Exception as e:
            if on_error is not None:
                on_error(name, e)
            continue
        if value:
            return StrategyHit(strategy=name, value=value)
    return None


def guarded(step: str, fn: Callable[[], T], default: T,
            on_error: Optional[Callable[[str, Exception], None]] = None) -> T:
    """Run one extraction layer; failures yield ``default``."""
    try:
        return fn()
    except Exception as e:
        if on_error is not None:
            on_error(step, e)
        return default


def merge_first_non_empty(*bundles: ContactBundle) -> ContactBundle:
    """Per-field merge in priority order: first non-empty value wins."""
    merged = {}
    for field in ContactBundle.model_fields:
        merged[field] = next((getattr(b, field) for b in bundles if getattr(b, field)), "")
    return ContactBundle(**merged)


# -------------------------
# URL helpers
# -------------------------
def host_of(url: str) -> str:
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def matches_domain(url: str, domains: Iterable[str]) -> bool:
    """True if the URL's host is (a subdomain of) one of ``domains``.

    Entries containing a slash (``youtube.com/channel``) are matched as
    substrings of the full URL instead.
    """
    low = (url or "").lower()
    host = host_of(low)
    for d in domains:
        d = d.lower()
        if "/" in d:
            if d in low:
                return True
        elif host == d or host.endswith("." + d):
            return True
    return False


def is_absolute_http(href: str) -> bool:
    return bool(href) and href.lower().startswith(("http://", "https://"))


def origin_of(url: str) -> str:
    p = urlparse(url)
    if not p.scheme or not p.netloc:
        return ""
    return f"{p.scheme}://{p.netloc}"


# -------------------------
# Emails
# -------------------------
def clean_email(raw: str, tlds: Iterable[str] = DEFAULT_EMAIL_TLDS) -> str:
    """Trim an email-shaped token at its first plausible TLD boundary.

    ``"contact@example.com<br/>Visit"`` -> ``"contact@example.com"``,
    ``"hi@acme.co.uk."`` -> ``"hi@acme.co.uk"``,
    ``"hello@acme.comVisit"`` -> ``"hello@acme.com"``.
    Returns the raw token when no boundary is found, or ``""`` when the input
    has no email-shaped token at all.
    """
    m = EMAIL_TOKEN_RE.search(raw or "")
    if not m:
        return ""
    token = m.group(0)
    local, _, domain = token.partition("@")
    labels = domain.split(".")
    tld_set = {t.lower() for t in tlds}

    # Exact TLD label (never the first label after '@'), extended over
    # consecutive TLD labels such as co.uk.
    for i in range(1, len(labels)):
        if labels[i].lower() in tld_set:
            j = i
            while j + 1 < len(labels) and labels[j + 1].lower() in tld_set:
                j += 1
            return f"{local}@{'.'.join(labels[:j + 1])}"

    # TLD glued to the following word.
    by_length = sorted(tld_set, key=len, reverse=True)
    for i in range(1, len(labels)):
        label = labels[i]
        for t in by_length:
            if len(label) > len(t) and label.lower().startswith(t) and not label[len(t)].islower():
                return f"{local}@{'.'.join(labels[:i] + [label[:len(t)]])}"
    return token


def find_emails(text: str, tlds: Iterable[str] = DEFAULT_EMAIL_TLDS) -> List[str]:
    """All cleaned email tokens in ``text`` (order preserved, deduped)."""
    out: List[str] = []
    for m in EMAIL_TOKEN_RE.finditer(text or ""):
        e = clean_email(m.group(0), tlds)
        if e and e not in out:
            out.append(e)
    return out


def sanitize_mailto(href: str) -> str:
    """Strip ``mailto:`` and any query/fragment; ``""`` when malformed."""
    if not href:
        return ""
    s = href.strip()
    raw = s[7:] if s.lower().startswith("mailto:") else s
    email = raw.split("?", 1)[0].split("#", 1)[0].strip()
    return email if EMAIL_RE.match(email) else ""


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def filter_email_candidates(
    candidates: Iterable[str],
    *,
    tlds: Iterable[str] = DEFAULT_EMAIL_TLDS,
    placeholder_domains: Iterable[str] = (),
    junk_local_parts: Iterable[str] = (),
    max_length: int = 100,
) -> List[str]:
    """Clean candidates and drop placeholders, junk local-parts and oversized matches."""
    placeholders = {d.lower() for d in placeholder_domains}
    junk = {j.lower() for j in junk_local_parts}
    tlds = list(tlds)
    out: List[str] = []
    for raw in candidates:
        if not raw or len(raw) >= max_length:
            continue
        e = clean_email(raw, tlds).lower()
        if not e or len(e) >= max_length or not EMAIL_RE.match(e):
            continue
        local, _, dom = e.partition("@")
        if dom in placeholders or any(dom.endswith("." + p) for p in placeholders):
            continue
        if local in junk:
            continue
        if e not in out:
            out.append(e)
    return out


def choose_best_email(candidates: Sequence[str], free_domains: Iterable[str],
                      preferred_local_parts: Iterable[str]) -> str:
    """Business domains first; among them canonical local-parts win."""
    if not candidates:
        return ""
    free = {d.lower() for d in free_domains}
    preferred = [p.lower() for p in preferred_local_parts]
    business = [e for e in candidates if email_domain(e) not in free]
    for p in preferred:
        for e in business:
            if e.split("@", 1)[0].lower() == p:
                return e
    if business:
        return business[0]
    return candidates[0]


# -------------------------
# Social links
# -------------------------
def extract_twitter_handle(url: str) -> str:
    """Trailing path segment of a Twitter/X URL, or ``""``."""
    if not url:
        return ""
    u = url.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    handle = u.rsplit("/", 1)[-1]
    if not handle or handle.lower() in TWITTER_HOSTS or "." in handle or ":" in handle:
        return ""
    segments = [s for s in urlparse(u).path.split("/") if s]
    if segments and segments[0].lower() in TWITTER_RESERVED:
        return ""
    return handle.lstrip("@")


def is_twitter_url(href: str) -> bool:
    return matches_domain(href, TWITTER_HOSTS)


def is_linkedin_url(href: str) -> bool:
    return matches_domain(href, LINKEDIN_HOSTS)


def classify_link(href: str, text: str = "", inner_html: str = "") -> Optional[str]:
    """Classify a link as email / twitter / linkedin / contact, or None."""
    h = (href or "").strip()
    hl = h.lower()
    tl = (text or "").strip().lower()
    il = (inner_html or "").lower()
    if hl.startswith("mailto:"):
        return "email"
    if not hl or hl.startswith(("#", "javascript:")):
        return None
    # Icon-only links count when they point somewhere absolute.
    if is_twitter_url(hl) or (is_absolute_http(hl) and any(k in il for k in TWITTER_ICON_HINTS)):
        return "twitter"
    if is_linkedin_url(hl) or (is_absolute_http(hl) and any(k in il for k in LINKEDIN_ICON_HINTS)):
        return "linkedin"
    if any(p in hl for p in CONTACT_PATHS) or any(t in tl for t in CONTACT_TEXT):
        return "contact"
    return None


# -------------------------
# Footer / contact scope
# -------------------------
def node_in_scope(node: Node, preds: ScopePredicates) -> bool:
    tag = (node.tag or "").lower()
    if tag in preds.tags:
        return True
    attrs = node.attributes or {}
    cls = (attrs.get("class") or "").lower()
    nid = (attrs.get("id") or "").lower()
    role = (attrs.get("role") or "").lower()
    if cls and (any(c in cls for c in preds.class_contains) or any(c in cls.split() for c in preds.class_exact)):
        return True
    if nid and (any(i in nid for i in preds.id_contains) or nid in preds.id_exact):
        return True
    return bool(role) and role in preds.roles


def ancestors(node: Node) -> List[Node]:
    out: List[Node] = []
    cur = node.parent
    while cur is not None and cur.tag not in ("html", "-undef"):
        out.append(cur)
        cur = cur.parent
    return out


def scoped_anchors(tree: HTMLParser, preds: ScopePredicates) -> List[Node]:
    """Anchors inside any footer/contact-looking container."""
    return [a for a in tree.css("a") if any(node_in_scope(n, preds) for n in ancestors(a))]


def count_mentions(text: str, domain: str) -> int:
    return (text or "").lower().count(domain.lower()) if domain else 0
