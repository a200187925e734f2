"""
Maker Leads - configuration.

Settings come from an optional YAML file and are then overridden by
``LEADS_*`` environment variables. Every heuristic table (denylists, TLDs,
footer/contact predicates) lives here so it can be tuned without code
changes.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.errors import ConfigurationError


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
)

# Allowed email TLDs used to find where an email ends inside noisy text.
DEFAULT_EMAIL_TLDS = [
    "com", "org", "net", "io", "ai", "co", "dev", "app", "software", "edu", "gov", "biz", "info",
    "me", "tv", "xyz", "uk", "us", "ca", "au", "de", "fr", "jp", "ru", "br", "in", "cn", "nl",
    "se", "no", "fi", "dk", "pl", "ch", "at", "be", "es", "pt", "gr", "cz", "hu", "ro", "sk",
    "bg", "hr", "rs", "si", "lt", "lv", "ee", "ua", "by", "kz", "tr", "il", "sa", "ae", "za",
    "ng", "ke", "eg", "ma", "sg", "my", "id", "ph", "th", "vn", "tw", "hk", "kr", "nz", "mx",
    "ar", "cl", "ie", "it", "so", "cc", "gg", "im", "is", "ly", "to", "ws", "fm", "sh", "ac",
]


class ScopePredicates(BaseModel):
    """Match rules for "this element looks like a footer/contact block"."""
    tags: List[str] = Field(default_factory=lambda: ["footer"], description="Tag names that always match")
    class_contains: List[str] = Field(
        default_factory=lambda: ["footer", "contact", "social", "bottom", "copyright", "site-info", "connect"],
        description="Substrings matched against the class attribute",
    )
    class_exact: List[str] = Field(default_factory=lambda: ["links", "socials"], description="Whole class tokens")
    id_contains: List[str] = Field(
        default_factory=lambda: ["footer", "contact", "social", "bottom"],
        description="Substrings matched against the id attribute",
    )
    id_exact: List[str] = Field(default_factory=list, description="Whole id values")
    roles: List[str] = Field(default_factory=lambda: ["contentinfo"], description="ARIA roles")

    def css_selectors(self) -> List[str]:
        """Equivalent CSS selector list, used by in-page scripts."""
        sel: List[str] = list(self.tags)
        sel += [f'[class*="{c}"]' for c in self.class_contains]
        sel += [f".{c}" for c in self.class_exact]
        sel += [f'[id*="{i}"]' for i in self.id_contains]
        sel += [f"#{i}" for i in self.id_exact]
        sel += [f'[role="{r}"]' for r in self.roles]
        return sel


class BrowserSettings(BaseModel):
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1280
    viewport_height: int = 800
    extra_headers: Dict[str, str] = Field(default_factory=lambda: {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": '"Chromium";v="140", "Not=A?Brand";v="24", "Google Chrome";v="140"',
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"macOS"',
    })
    launch_args: List[str] = Field(default_factory=lambda: [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-extensions",
        "--no-first-run",
        "--disable-default-apps",
        "--disable-blink-features=AutomationControlled",
    ])


class NavigationSettings(BaseModel):
    listing_timeout_ms: int = Field(60000, ge=1000)
    attempt_timeout_ms: int = Field(45000, ge=1000, description="Per-attempt timeout")
    hard_timeout_ms: int = Field(60000, ge=1000, description="Ceiling for one open() including retries")
    retries: int = Field(3, ge=1, description="Total attempts per open()")
    retry_pause_ms: int = Field(2000, ge=0)
    settle_ms: int = Field(3000, ge=0, description="Pause after the listing page loads")
    debug_dir: Optional[str] = Field(None, description="Screenshots of flagged pages go here")


class ListingSettings(BaseModel):
    target_url: str = "https://www.producthunt.com/"
    site_base: str = "https://www.producthunt.com"
    entity_prefix: str = "/products/"
    fallback_fragment: str = "/posts/"
    max_products: int = Field(10, ge=1)
    min_expected: int = Field(20, ge=0)
    max_scrolls: int = Field(50, ge=1)
    stable_rounds: int = Field(2, ge=1)
    scroll_pause_ms: int = Field(2000, ge=0)


class ResolverSettings(BaseModel):
    max_makers_per_entity: int = Field(3, ge=0)
    identity_prefix: str = "/@"
    redirect_prefix: str = "/r/"
    source_domains: List[str] = Field(default_factory=lambda: ["producthunt.com"])
    placeholder_domains: List[str] = Field(default_factory=lambda: ["lu.ma/producthunt"])
    social_domains: List[str] = Field(default_factory=lambda: [
        "twitter.com", "x.com", "linkedin.com", "facebook.com", "instagram.com",
        "youtube.com/channel", "youtube.com/user", "github.com", "medium.com", "discord.gg", "t.me",
    ])
    text_tlds: List[str] = Field(default_factory=lambda: ["ai", "app", "dev"])
    text_denylist: List[str] = Field(default_factory=lambda: ["bebop.ai"])
    denylist_min_mentions: int = Field(3, ge=1)
    denylist_min_header_links: int = Field(2, ge=1)
    header_top_px: int = Field(300, ge=0)
    website_retries: int = Field(2, ge=0)
    retry_backoff_ms: int = Field(5000, ge=0)


class ContactSettings(BaseModel):
    email_tlds: List[str] = Field(default_factory=lambda: list(DEFAULT_EMAIL_TLDS))
    free_email_domains: List[str] = Field(default_factory=lambda: [
        "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "icloud.com", "aol.com",
        "protonmail.com", "proton.me", "mail.com",
    ])
    placeholder_email_domains: List[str] = Field(default_factory=lambda: [
        "example.com", "yourdomain.com", "domain.com", "email.com", "sentry.io",
    ])
    junk_local_parts: List[str] = Field(default_factory=lambda: ["test", "user", "email", "name", "your", "you"])
    preferred_local_parts: List[str] = Field(default_factory=lambda: [
        "contact", "info", "hello", "support", "sales", "team", "help", "business",
    ])
    synthesized_local_parts: List[str] = Field(default_factory=lambda: ["info", "contact", "hello", "support"])
    max_email_length: int = Field(100, ge=6)
    scope: ScopePredicates = Field(default_factory=ScopePredicates)
    site_denylist: List[str] = Field(default_factory=lambda: [
        "bebop.ai", "lu.ma", "twitter.com", "x.com", "linkedin.com", "facebook.com",
    ])
    site_min_header_mentions: int = Field(2, ge=1)
    site_min_top_links: int = Field(2, ge=1)
    site_top_px: int = Field(500, ge=0)
    scroll_steps: int = Field(4, ge=0)
    scroll_step_pause_ms: int = Field(1000, ge=0)
    footer_settle_ms: int = Field(3000, ge=0)

    @field_validator("email_tlds", mode="before")
    @classmethod
    def dedupe_tlds(cls, v):
        """Lowercase and dedupe while preserving order."""
        seen: List[str] = []
        for t in v or []:
            t = str(t).strip().lower().lstrip(".")
            if t and t not in seen:
                seen.append(t)
        return seen


class RateLimitSettings(BaseModel):
    base_delay_ms: int = Field(3000, ge=0)
    fast_gap_ms: int = Field(1000, ge=0)
    burst_threshold: int = Field(5, ge=0)
    burst_step: float = Field(0.2, ge=0)
    jitter_ms: int = Field(1000, ge=0)
    fast_penalty_ms: int = Field(1000, ge=0)
    fast_jitter_ms: int = Field(2000, ge=0)
    failure_penalty_ms: int = Field(1000, ge=0)


class DeliverySettings(BaseModel):
    verify_endpoint: str = "https://emailverifier.reoon.com/api/v1/verify"
    verify_api_key: Optional[str] = None
    verify_timeout_s: float = 20.0
    push_endpoint: str = "https://api.instantly.ai/api/v2/leads"
    push_token: Optional[str] = None
    push_campaign_id: Optional[str] = None
    push_timeout_s: float = 15.0
    push_attempts: int = Field(4, ge=1)


class OpsSettings(BaseModel):
    log_path: Optional[str] = None
    stdout: bool = False


class ScraperConfig(BaseModel):
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    navigation: NavigationSettings = Field(default_factory=NavigationSettings)
    listing: ListingSettings = Field(default_factory=ListingSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    contacts: ContactSettings = Field(default_factory=ContactSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    ops: OpsSettings = Field(default_factory=OpsSettings)


def _env_bool(raw: str, name: str) -> bool:
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name}: expected a boolean, got {raw!r}")


def _env_int(raw: str, name: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name}: expected an integer, got {raw!r}") from None


# env var -> (section, key, parser)
ENV_OVERRIDES = {
    "LEADS_TARGET_URL": ("listing", "target_url", lambda raw, name: raw.strip()),
    "LEADS_MAX_PRODUCTS": ("listing", "max_products", _env_int),
    "LEADS_MAX_MAKERS_PER_PRODUCT": ("resolver", "max_makers_per_entity", _env_int),
    "LEADS_DELAY_BETWEEN_REQUESTS_MS": ("rate_limit", "base_delay_ms", _env_int),
    "LEADS_HEADLESS": ("browser", "headless", _env_bool),
    "LEADS_DEBUG_DIR": ("navigation", "debug_dir", lambda raw, name: raw.strip() or None),
    "LEADS_VERIFY_API_KEY": ("delivery", "verify_api_key", lambda raw, name: raw.strip() or None),
    "LEADS_PUSH_TOKEN": ("delivery", "push_token", lambda raw, name: raw.strip() or None),
    "LEADS_PUSH_CAMPAIGN_ID": ("delivery", "push_campaign_id", lambda raw, name: raw.strip() or None),
}


def read_yaml(path: Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists() or not path.is_file():
        raise ConfigurationError(f"config file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"config root must be a mapping: {path}")
    return data


def load_config(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> ScraperConfig:
    """Build a ScraperConfig from YAML (optional) plus ``LEADS_*`` overrides."""
    data: Dict[str, Any] = read_yaml(path) if path is not None else {}
    env = os.environ if env is None else env
    for name, (section, key, parse) in ENV_OVERRIDES.items():
        raw = env.get(name)
        if raw is None or raw == "":
            continue
        block = data.setdefault(section, {})
        if not isinstance(block, dict):
            raise ConfigurationError(f"config section '{section}' must be a mapping")
        block[key] = parse(raw, name)
    try:
        return ScraperConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e
