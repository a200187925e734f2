import re

from src.config import ListingSettings
from src.pipeline import dom_scripts
from src.pipeline.discovery import ListingDiscovery, extract_primary
from selectolax.parser import HTMLParser

from tests.unit.page_stubs import StubNavigator, StubPage


LISTING_URL = "https://www.producthunt.com/leaderboard/daily/2025/3/7/all"


def _cards(n, start=0):
    return "".join(
        f'<section><a href="/products/tool-{i}?ref=home"><h3>Tool {i}</h3></a>'
        f'<a href="/products/tool-{i}"></a></section>'
        for i in range(start, start + n)
    )


def _settings(**kw):
    base = dict(scroll_pause_ms=0, min_expected=2, max_products=100)
    base.update(kw)
    return ListingSettings(**base)


def test_primary_pass_dedupes_and_strips_query():
    tree = HTMLParser(f"<html><body>{_cards(3)}</body></html>")
    found = extract_primary(tree, "https://www.producthunt.com", "/products/")
    assert [e.source_url for e in found] == [
        "https://www.producthunt.com/products/tool-0",
        "https://www.producthunt.com/products/tool-1",
        "https://www.producthunt.com/products/tool-2",
    ]
    assert [e.name for e in found] == ["Tool 0", "Tool 1", "Tool 2"]


def test_primary_pass_skips_anchors_without_any_name():
    html = '<html><body><a href="/products/alpha"><img src="x.png"/></a>' \
           '<a href="/products/beta"><div class="item-title"></div></a></body></html>'
    found = extract_primary(HTMLParser(html), "https://www.producthunt.com", "/products/")
    assert found == []


def test_discovery_is_lazy_and_unique():
    page = StubPage(html=f"<html><body>{_cards(3)}</body></html>", url=LISTING_URL, heights=[1000, 1000, 1000])
    nav = StubNavigator({LISTING_URL: page})
    discovery = ListingDiscovery(nav, _settings())

    it = discovery.discover(LISTING_URL)
    assert nav.opened == []
    items = list(it)

    assert nav.opened == [LISTING_URL]
    urls = [e.source_url for e in items]
    assert len(urls) == len(set(urls)) == 3
    assert all(re.match(r"^https://www\.producthunt\.com/products/[^/?#]+$", u) for u in urls)
    assert dom_scripts.LISTING_FALLBACK_LINKS not in page.evaluated


def test_scroll_terminates_at_ceiling_when_height_keeps_growing():
    page = StubPage(html=f"<html><body>{_cards(2)}</body></html>", url=LISTING_URL, heights=range(1000, 10**6, 500))
    nav = StubNavigator({LISTING_URL: page})
    discovery = ListingDiscovery(nav, _settings(max_scrolls=7))

    list(discovery.discover(LISTING_URL))

    assert discovery.last_scroll_count == 7
    assert len(page.scrolls) == 7


def test_scroll_stops_after_stable_rounds():
    page = StubPage(html=f"<html><body>{_cards(2)}</body></html>", url=LISTING_URL,
                    heights=[1000, 2000, 3000, 3000, 3000, 4000])
    nav = StubNavigator({LISTING_URL: page})
    discovery = ListingDiscovery(nav, _settings(stable_rounds=2))

    list(discovery.discover(LISTING_URL))

    assert discovery.last_scroll_count == 4


def test_fallback_runs_when_primary_finds_too_few():
    page = StubPage(
        html=f"<html><body>{_cards(1)}</body></html>",
        url=LISTING_URL,
        heights=[1000],
        scripts={dom_scripts.LISTING_FALLBACK_LINKS: lambda frag: [
            {"name": "Post One", "href": "https://www.producthunt.com/posts/post-one"},
            {"name": "Post One", "href": "https://www.producthunt.com/posts/post-one"},
            {"name": "", "href": "https://www.producthunt.com/posts/nameless"},
        ]},
    )
    nav = StubNavigator({LISTING_URL: page})
    discovery = ListingDiscovery(nav, _settings(min_expected=5))

    items = list(discovery.discover(LISTING_URL))

    assert [e.source_url for e in items] == [
        "https://www.producthunt.com/products/tool-0",
        "https://www.producthunt.com/posts/post-one",
    ]


def test_max_items_truncates():
    page = StubPage(html=f"<html><body>{_cards(5)}</body></html>", url=LISTING_URL, heights=[1000])
    discovery = ListingDiscovery(StubNavigator({LISTING_URL: page}), _settings())
    assert len(list(discovery.discover(LISTING_URL, max_items=2))) == 2
