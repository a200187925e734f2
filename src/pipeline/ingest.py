from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from src.config import ScraperConfig
from src.ops_logger import OpsLogger
from src.schemas import EntityDetails, ListingEntity, OutputRecord
from src.pipeline.dates import run_date_for
from src.pipeline.discovery import ListingDiscovery
from src.pipeline.extractors import ProfileContactExtractor
from src.pipeline.fetchers.playwright import BrowserSession, Navigator
from src.pipeline.rate_limit import AdaptiveRateLimiter
from src.pipeline.resolver import EntityResolver
from src.pipeline.website_contacts import WebsiteContactExtractor


def build_records(entity: ListingEntity, details: EntityDetails, extracted_date: str) -> List[OutputRecord]:
    """One record per person in resolution order, or one placeholder when there are none."""
    if not details.contacts:
        return [OutputRecord.build(entity, details, None, extracted_date)]
    return [OutputRecord.build(entity, details, p, extracted_date) for p in details.contacts]


@dataclass
class RunStats:
    entities: int = 0
    empty_entities: int = 0
    records: int = 0
    with_email: int = 0
    with_website: int = 0
    started: float = field(default_factory=time.perf_counter)

    def as_dict(self) -> Dict[str, object]:
        return {
            "entities": self.entities,
            "empty_entities": self.empty_entities,
            "records": self.records,
            "with_email": self.with_email,
            "with_website": self.with_website,
            "wall_s": round(max(0.0, time.perf_counter() - self.started), 2),
        }


class LeadPipeline:
    """Listing -> entity details -> flat records, strictly sequential.

    Collaborators are injectable; by default they are built from the config
    around a single BrowserSession.
    """

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        *,
        session: Optional[BrowserSession] = None,
        navigator: Optional[Navigator] = None,
        discovery: Optional[ListingDiscovery] = None,
        resolver: Optional[EntityResolver] = None,
        rate_limiter: Optional[AdaptiveRateLimiter] = None,
        ops: Optional[OpsLogger] = None,
    ) -> None:
        self.config = config or ScraperConfig()
        cfg = self.config
        self.ops = ops
        self.session = session if session is not None else (None if navigator else BrowserSession(cfg.browser))
        self.navigator = navigator or Navigator(self.session, cfg.navigation, ops=ops)
        self.rate_limiter = rate_limiter or AdaptiveRateLimiter(cfg.rate_limit)
        self.discovery = discovery or ListingDiscovery(self.navigator, cfg.listing, cfg.navigation, ops=ops)
        self.resolver = resolver or EntityResolver(
            self.navigator,
            ProfileContactExtractor(self.navigator, cfg.contacts, ops=ops),
            WebsiteContactExtractor(self.navigator, cfg.contacts, cfg.navigation, ops=ops),
            self.rate_limiter,
            cfg.resolver,
            cfg.listing,
            cfg.contacts,
            ops=ops,
        )
        self.stats = RunStats()

    def run(self, listing_url: Optional[str] = None, max_items: Optional[int] = None,
            extracted_date: Optional[str] = None) -> Iterator[OutputRecord]:
        """Yield OutputRecords entity by entity."""
        url = listing_url or self.config.listing.target_url
        run_date = extracted_date or run_date_for(url)
        for index, entity in enumerate(self.discovery.discover(url, max_items), start=1):
            print(f"➡️  [{index}] {entity.name}: {entity.source_url}")
            details = self.resolver.resolve(entity.source_url)
            self.stats.entities += 1
            if not details.canonical_website and not details.contacts:
                self.stats.empty_entities += 1
            if details.canonical_website:
                self.stats.with_website += 1
            for record in build_records(entity, details, run_date):
                self.stats.records += 1
                if record.email or record.website_email:
                    self.stats.with_email += 1
                yield record
            self.rate_limiter.wait()
        if self.ops:
            self.ops.event("run_summary", url=url, **self.stats.as_dict(), rate_limit=self.rate_limiter.stats())

    def close(self) -> None:
        if self.session is not None:
            self.session.close()
