"""
Downstream collaborators: remote email verification and lead push.

Neither is on the scraping path; both consume OutputRecords after a run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from src.config import DeliverySettings
from src.errors import ConfigurationError, DeliveryError
from src.schemas import OutputRecord
from src.pipeline.heuristics import EMAIL_RE


RETRIABLE_STATUS = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class VerificationResult:
    email: str
    status: str  # valid | invalid | invalid_format | error
    message: str = ""

    @property
    def is_valid(self) -> bool:
        return self.status == "valid"


class EmailVerifier:
    """Quick-mode verification against a remote API (``?email=..&key=..&mode=quick``)."""

    def __init__(self, settings: DeliverySettings, client: Optional[httpx.Client] = None) -> None:
        if not settings.verify_api_key:
            raise ConfigurationError("email verification requires an API key (LEADS_VERIFY_API_KEY)")
        self.settings = settings
        self._client = client or httpx.Client(timeout=settings.verify_timeout_s, follow_redirects=True)
        self._cache: Dict[str, VerificationResult] = {}

    def verify(self, email: str) -> VerificationResult:
        email = (email or "").strip()
        if not email or not EMAIL_RE.match(email):
            return VerificationResult(email=email, status="invalid_format", message="Invalid email format")
        if email in self._cache:
            return self._cache[email]
        try:
            r = self._client.get(
                self.settings.verify_endpoint,
                params={"email": email, "key": self.settings.verify_api_key, "mode": "quick"},
            )
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            return VerificationResult(email=email, status="error", message=f"Error verifying: {e}")
        remote = str(data.get("status") or "")
        result = VerificationResult(
            email=email,
            status="valid" if remote == "valid" else "invalid",
            message="Valid email" if remote == "valid" else f"Invalid email: {remote}",
        )
        self._cache[email] = result
        return result

    def statuses_for(self, records: Iterable[OutputRecord]) -> Dict[str, str]:
        """Ledger status per distinct email: "Valid" or "Invalid"."""
        out: Dict[str, str] = {}
        for rec in records:
            for email in (rec.email, rec.website_email):
                if email and email not in out:
                    out[email] = "Valid" if self.verify(email).is_valid else "Invalid"
        return out

    def close(self) -> None:
        self._client.close()


class LeadPushClient:
    """POST leads with an email to a campaign API keyed by bearer token + campaign id."""

    def __init__(
        self,
        settings: DeliverySettings,
        client: Optional[httpx.Client] = None,
        *,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        if not (settings.push_token and settings.push_campaign_id):
            raise ConfigurationError("lead push requires LEADS_PUSH_TOKEN and LEADS_PUSH_CAMPAIGN_ID")
        self.settings = settings
        self._client = client or httpx.Client(timeout=settings.push_timeout_s)
        self._sleep = sleeper

    @staticmethod
    def lead_payload(record: OutputRecord) -> Optional[Dict[str, object]]:
        email = record.email or record.website_email
        if not email:
            return None
        first, _, last = record.maker_name.partition(" ")
        return {
            "email": email,
            "first_name": first,
            "last_name": last,
            "company_name": record.product_name,
            "website": record.product_website,
            "custom_variables": {
                "product_url": record.product_url,
                "twitter": record.x_id or record.website_twitter,
                "linkedin": record.linkedin_url or record.website_linkedin,
            },
        }

    def push(self, records: Iterable[OutputRecord]) -> int:
        """Push every record that has an email; returns the number accepted."""
        headers = {"Authorization": f"Bearer {self.settings.push_token}", "Content-Type": "application/json"}
        sent = 0
        seen: List[str] = []
        for rec in records:
            lead = self.lead_payload(rec)
            if lead is None or lead["email"] in seen:
                continue
            seen.append(str(lead["email"]))
            self._post({**lead, "campaign_id": self.settings.push_campaign_id}, headers)
            sent += 1
        return sent

    def _post(self, payload: Dict[str, object], headers: Dict[str, str]) -> None:
        delay = 1.0
        for attempt in range(self.settings.push_attempts):
            try:
                r = self._client.post(self.settings.push_endpoint, json=payload, headers=headers)
            except httpx.TransportError as e:
                if attempt == self.settings.push_attempts - 1:
                    raise DeliveryError(f"lead push transport error: {e}") from e
                self._sleep(delay)
                delay *= 2
                continue
            if 200 <= r.status_code < 300:
                return
            if r.status_code in RETRIABLE_STATUS:
                if attempt == self.settings.push_attempts - 1:
                    break
                self._sleep(delay)
                delay *= 2
                continue
            raise DeliveryError(f"HTTP {r.status_code}: {r.text[:200]}")
        raise DeliveryError(f"lead push: exhausted {self.settings.push_attempts} attempts")

    def close(self) -> None:
        self._client.close()
