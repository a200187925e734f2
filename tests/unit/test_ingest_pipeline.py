from unittest.mock import MagicMock

from src.schemas import ContactBundle, EntityDetails, ListingEntity, PersonContact
from src.pipeline.ingest import LeadPipeline, build_records


ENTITY = ListingEntity(name="Acme", source_url="https://www.producthunt.com/products/acme")


def _details(contacts=None, website="https://acme.io"):
    return EntityDetails(
        canonical_website=website,
        contacts=contacts or [],
        site_contact_info=ContactBundle(email="hello@acme.io", twitter="https://x.com/acme"),
        website_strategy="visit_button" if website else "",
    )


def test_one_record_per_person_in_resolution_order():
    people = [
        PersonContact(name="Ada", profile_url="https://www.producthunt.com/@ada", email="ada@acme.io",
                      is_confirmed_role=True),
        PersonContact(name="Bob", profile_url="https://www.producthunt.com/@bob", social_handle="bob"),
    ]
    records = build_records(ENTITY, _details(people), "2025-03-07")

    assert [r.maker_name for r in records] == ["Ada", "Bob"]
    assert [r.email for r in records] == ["ada@acme.io", ""]
    assert records[1].x_id == "bob"
    for r in records:
        assert r.product_name == "Acme"
        assert r.product_website == "https://acme.io"
        assert r.website_email == "hello@acme.io"
        assert r.website_twitter == "https://x.com/acme"
        assert r.extracted_date == "2025-03-07"


def test_entity_without_people_gives_single_placeholder_record():
    records = build_records(ENTITY, _details(), "2025-03-07")
    assert len(records) == 1
    assert records[0].maker_name == records[0].maker_url == records[0].email == ""
    assert records[0].website_email == "hello@acme.io"


def test_site_url_fills_contact_page_column_when_no_contact_page():
    details = EntityDetails(site_contact_info=ContactBundle(site_url="https://acme.io"))
    record = build_records(ENTITY, details, "2025-03-07")[0]
    assert record.website_contact_page == "https://acme.io"
    assert record.to_row()["Website Contact Page"] == "https://acme.io"

    details = EntityDetails(site_contact_info=ContactBundle(contact_page_url="https://acme.io/contact",
                                                            site_url="https://acme.io"))
    assert build_records(ENTITY, details, "2025-03-07")[0].website_contact_page == "https://acme.io/contact"


def _pipeline(entities, details_by_url):
    discovery = MagicMock()
    discovery.discover.return_value = iter(entities)
    resolver = MagicMock()
    resolver.resolve.side_effect = lambda url: details_by_url[url]
    limiter = MagicMock()
    limiter.stats.return_value = {"total_requests": 0}
    ops = MagicMock()
    pipeline = LeadPipeline(navigator=MagicMock(), discovery=discovery, resolver=resolver,
                            rate_limiter=limiter, ops=ops)
    return pipeline, discovery, limiter, ops


def test_run_streams_records_and_waits_between_entities():
    other = ListingEntity(name="Other", source_url="https://www.producthunt.com/products/other")
    person = PersonContact(name="Ada", profile_url="https://www.producthunt.com/@ada", email="ada@acme.io")
    pipeline, discovery, limiter, ops = _pipeline(
        [ENTITY, other],
        {ENTITY.source_url: _details([person]), other.source_url: EntityDetails()},
    )

    url = "https://www.producthunt.com/leaderboard/daily/2025/3/7/all"
    records = list(pipeline.run(url, max_items=5))

    discovery.discover.assert_called_once_with(url, 5)
    assert [r.product_name for r in records] == ["Acme", "Other"]
    assert all(r.extracted_date == "2025-03-07" for r in records)
    assert limiter.wait.call_count == 2
    stats = pipeline.stats.as_dict()
    assert stats["entities"] == 2
    assert stats["empty_entities"] == 1
    assert stats["records"] == 2
    assert stats["with_email"] == 1
    assert stats["with_website"] == 1
    assert ops.event.call_args.args[0] == "run_summary"


def test_run_uses_explicit_extraction_date():
    pipeline, _, _, _ = _pipeline([ENTITY], {ENTITY.source_url: _details()})
    records = list(pipeline.run("https://www.producthunt.com/", extracted_date="2024-12-31"))
    assert records[0].extracted_date == "2024-12-31"


def test_close_without_session_is_a_noop():
    pipeline, _, _, _ = _pipeline([], {})
    assert pipeline.session is None
    pipeline.close()
