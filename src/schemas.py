"""
Maker Leads - Pydantic Data Schemas

Core data models for listing entities, people, contact bundles and the flat
output record handed to exporters.
"""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ListingEntity(BaseModel):
    """One product discovered on the listing page. Identity is ``source_url``."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name from the listing card")
    source_url: str = Field(..., description="Absolute URL of the product detail page")

    @field_validator('source_url')
    @classmethod
    def validate_source_url(cls, v):
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('source_url must be a valid HTTP/HTTPS URL')
        return v


class ProfileContact(BaseModel):
    """Contact fields read from a person's profile page. Empty string means not found."""
    email: str = ""
    social_handle: str = ""
    linkedin_url: str = ""


class PersonContact(BaseModel):
    name: str = Field(..., description="Display name of the maker")
    profile_url: str = Field(..., description="Absolute profile URL on the source site")
    email: str = ""
    social_handle: str = Field("", description="Twitter/X handle without '@'")
    linkedin_url: str = ""
    is_confirmed_role: bool = Field(False, description="Listed with an explicit 'Maker' label")

    @classmethod
    def from_profile(cls, name: str, profile_url: str, profile: ProfileContact, confirmed: bool) -> "PersonContact":
        return cls(
            name=name,
            profile_url=profile_url,
            email=profile.email,
            social_handle=profile.social_handle,
            linkedin_url=profile.linkedin_url,
            is_confirmed_role=confirmed,
        )


class ContactBundle(BaseModel):
    """Contacts found on one website page; every field may legitimately be ``""``."""
    email: str = ""
    twitter: str = ""
    linkedin: str = ""
    contact_page_url: str = ""
    site_url: str = Field("", description="Canonical site URL observed on the website itself")

    def is_empty(self) -> bool:
        return not (self.email or self.twitter or self.linkedin or self.contact_page_url)

    def missing(self) -> List[str]:
        return [f for f in ("email", "twitter", "linkedin", "contact_page_url") if not getattr(self, f)]


class EntityDetails(BaseModel):
    canonical_website: str = ""
    contacts: List[PersonContact] = Field(default_factory=list)
    site_contact_info: ContactBundle = Field(default_factory=ContactBundle)
    website_strategy: str = Field("", description="Name of the cascade step that produced the website")


# Column titles used by CSV exports and the ledger.
OUTPUT_COLUMNS: Dict[str, str] = {
    "product_name": "Product Name",
    "product_url": "Product URL",
    "product_website": "Product Website",
    "maker_name": "Maker Name",
    "maker_url": "Maker URL",
    "email": "Email",
    "x_id": "X (Twitter) ID",
    "linkedin_url": "LinkedIn URL",
    "website_email": "Website Email",
    "website_twitter": "Website Twitter",
    "website_linkedin": "Website LinkedIn",
    "website_contact_page": "Website Contact Page",
    "extracted_date": "Extracted Date",
}


class OutputRecord(BaseModel):
    """Flat join of entity, one person (or a placeholder) and the site contacts."""
    product_name: str
    product_url: str
    product_website: str = ""
    maker_name: str = ""
    maker_url: str = ""
    email: str = ""
    x_id: str = ""
    linkedin_url: str = ""
    website_email: str = ""
    website_twitter: str = ""
    website_linkedin: str = ""
    website_contact_page: str = ""
    extracted_date: str = ""

    @field_validator('product_name', 'product_url')
    @classmethod
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('product fields cannot be empty')
        return v.strip()

    @classmethod
    def build(cls, entity: ListingEntity, details: EntityDetails, person: PersonContact | None,
              extracted_date: str) -> "OutputRecord":
        site = details.site_contact_info
        return cls(
            product_name=entity.name,
            product_url=entity.source_url,
            product_website=details.canonical_website,
            maker_name=person.name if person else "",
            maker_url=person.profile_url if person else "",
            email=person.email if person else "",
            x_id=person.social_handle if person else "",
            linkedin_url=person.linkedin_url if person else "",
            website_email=site.email,
            website_twitter=site.twitter,
            website_linkedin=site.linkedin,
            website_contact_page=site.contact_page_url or site.site_url,
            extracted_date=extracted_date,
        )

    def to_row(self) -> Dict[str, str]:
        """Dict keyed by the human-readable column titles."""
        data = self.model_dump()
        return {title: data[key] for key, title in OUTPUT_COLUMNS.items()}
