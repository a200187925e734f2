from unittest.mock import MagicMock

from selectolax.parser import HTMLParser

from src.config import ContactSettings
from src.errors import NavigationError, NavigationFailure
from src.pipeline import dom_scripts
from src.pipeline.website_contacts import WebsiteContactExtractor

from tests.unit.page_stubs import StubNavigator, StubPage


HOME = "https://acme.com/"
CONTACT = "https://acme.com/contact"

HOME_HTML = """<html><body>
  <nav><a href="/contact">Contact</a></nav>
  <footer>
    <a href="https://x.com/acme">X</a>
    <a href="mailto:hello@acme.com">Mail</a>
  </footer>
</body></html>"""

CONTACT_HTML = """<html><body>
  <div class="contact-card"><a href="mailto:sales@acme.com?subject=Hi">Email sales</a></div>
</body></html>"""


def _extractor(navigator=None, ops=None, **settings):
    return WebsiteContactExtractor(navigator or StubNavigator(), ContactSettings(**settings), ops=ops)


def test_passes_merge_contact_page_first_then_footer_then_initial():
    page = StubPage(
        html=HOME_HTML,
        url=HOME,
        scripts={dom_scripts.FIND_CONTACT_LINK: "/contact"},
        routes={HOME: HOME_HTML, CONTACT: CONTACT_HTML},
    )

    bundle = _extractor().extract_from_page(page)

    assert bundle.email == "sales@acme.com"
    assert bundle.twitter == "https://x.com/acme"
    assert bundle.contact_page_url == CONTACT
    assert bundle.site_url == "https://acme.com"
    assert page.gotos == [CONTACT]
    assert page.url == HOME


def test_footer_pass_scrolls_in_steps_then_settles():
    page = StubPage(html=HOME_HTML, url=HOME, heights=[2000])
    _extractor(scroll_steps=4, scroll_step_pause_ms=10, footer_settle_ms=30).extract_from_page(page)

    assert page.scrolls == [500, 1000, 1500, 2000]
    assert page.pauses == [10, 10, 10, 10, 30]


class NoHistoryPage(StubPage):
    def go_back(self, wait=None, timeout_ms=None):
        raise RuntimeError("no history entry")


def test_contact_page_return_falls_back_to_goto_start():
    page = NoHistoryPage(
        html=HOME_HTML,
        url=HOME,
        scripts={dom_scripts.FIND_CONTACT_LINK: "/contact"},
        routes={HOME: HOME_HTML, CONTACT: CONTACT_HTML},
    )
    ops = MagicMock()

    bundle = _extractor(ops=ops).extract_from_page(page)

    assert page.gotos == [CONTACT, HOME]
    assert page.url == HOME
    assert bundle.email == "sales@acme.com"
    steps = [c.kwargs.get("step") for c in ops.event.call_args_list]
    assert "go_back" in steps


class StrandedPage(NoHistoryPage):
    def goto(self, url, wait=None, timeout_ms=None):
        if url == HOME:
            raise RuntimeError("net::ERR_CONNECTION_RESET")
        return super().goto(url, wait, timeout_ms)


def test_stranded_on_contact_page_skips_initial_and_footer_passes():
    page = StrandedPage(
        html=HOME_HTML,
        url=HOME,
        scripts={dom_scripts.FIND_CONTACT_LINK: "/contact"},
        routes={HOME: HOME_HTML, CONTACT: CONTACT_HTML},
    )
    ops = MagicMock()

    bundle = _extractor(ops=ops).extract_from_page(page)

    assert bundle.email == "sales@acme.com"
    assert bundle.twitter == ""
    assert page.url == CONTACT
    assert page.scrolls == []
    steps = [c.kwargs.get("step") for c in ops.event.call_args_list]
    assert steps[-2:] == ["go_back", "return_to_start"]


def test_dom_social_results_on_lookalike_hosts_are_rejected():
    page = StubPage(
        html="<html><body><ul><li><a href='https://mux.com/docs'>Docs</a></li></ul></body></html>",
        url="https://mux.com/",
        scripts={
            dom_scripts.SOCIAL_ICON_LINKS: {"twitter": "https://dropbox.com/s/x", "linkedin": "https://notlinkedin.com/a"},
            dom_scripts.LAST_RESORT_SCAN: {"twitter": "https://box.com/"},
            dom_scripts.DOM_PATTERN_SCAN: {"twitter": "https://mux.com/docs",
                                           "linkedin": "https://www.linkedin.com/company/mux"},
        },
    )
    b = _extractor().extract_single(page)
    assert b.twitter == ""
    assert b.linkedin == "https://www.linkedin.com/company/mux"


def test_fragment_contact_link_is_ignored():
    page = StubPage(html=HOME_HTML, url=HOME, scripts={dom_scripts.FIND_CONTACT_LINK: "#contact"})
    bundle = _extractor().extract_from_page(page)
    assert page.gotos == []
    assert bundle.email == "hello@acme.com"


def test_scan_links_prefers_footer_scope():
    html = """<html><body>
      <header><a href="https://x.com/someone_else">tw</a></header>
      <div id="site-footer"><a href="https://x.com/acme">tw</a>
        <a href="https://www.linkedin.com/company/acme">in</a></div>
    </body></html>"""
    b = _extractor().scan_links(HTMLParser(html), HOME)
    assert b.twitter == "https://x.com/acme"
    assert b.linkedin == "https://www.linkedin.com/company/acme"


def test_scan_links_uses_all_anchors_when_nothing_is_scoped():
    html = '<html><body><a href="https://x.com/acme">tw</a><a href="/about">About us</a></body></html>'
    b = _extractor().scan_links(HTMLParser(html), HOME)
    assert b.twitter == "https://x.com/acme"
    assert b.contact_page_url == "https://acme.com/about"


def test_failing_layer_only_empties_its_own_fields():
    def broken(arg):
        raise RuntimeError("script error")

    html = '<html><body><footer><a href="https://x.com/acme">tw</a></footer></body></html>'
    page = StubPage(html=html, url=HOME, scripts={dom_scripts.EMAIL_CANDIDATES: broken})
    ops = MagicMock()

    b = _extractor(ops=ops).extract_single(page)

    assert b.twitter == "https://x.com/acme"
    assert b.email == ""
    steps = [c.kwargs.get("step") for c in ops.event.call_args_list]
    assert steps == ["email_candidates"]


def test_last_resort_scan_runs_only_when_everything_is_empty():
    page = StubPage(
        html="<html><body><p>Nothing here</p></body></html>",
        url=HOME,
        scripts={
            dom_scripts.LAST_RESORT_SCAN: {"emails": ["test@acme.com", "team@acme.com"], "twitter": "https://x.com/acme"},
            dom_scripts.DOM_PATTERN_SCAN: {"linkedin": "https://linkedin.com/company/acme"},
        },
    )
    b = _extractor().extract_single(page)

    assert b.email == "team@acme.com"
    assert b.twitter == "https://x.com/acme"
    assert b.linkedin == "https://linkedin.com/company/acme"
    assert dom_scripts.LAST_RESORT_SCAN in page.evaluated


def test_last_resort_scan_skipped_when_links_found_something():
    html = '<html><body><footer><a href="https://x.com/acme">tw</a></footer></body></html>'
    page = StubPage(html=html, url=HOME)
    _extractor().extract_single(page)
    assert dom_scripts.LAST_RESORT_SCAN not in page.evaluated
    assert dom_scripts.DOM_PATTERN_SCAN in page.evaluated


def test_synthesized_email_requires_literal_presence():
    ext = _extractor()
    assert ext.synthesize_email("https://www.acme.com/about", "Questions? Hello@acme.com") == "hello@acme.com"
    assert ext.synthesize_email("https://acme.com/", "We reply within a day") == ""


def test_generic_site_url_dropped_without_corroboration():
    page = StubPage(url="https://bebop.ai/p/acme", scripts={
        dom_scripts.SITE_URL_CANDIDATES: {"origin": "https://bebop.ai"},
        dom_scripts.SITE_CORROBORATION: {"headerMentions": 1, "topLinks": 0},
    })
    assert _extractor().refine_site_url(page) == ""

    page.scripts[dom_scripts.SITE_CORROBORATION] = {"headerMentions": 2, "topLinks": 0}
    assert _extractor().refine_site_url(page) == "https://bebop.ai"


def test_site_url_prefers_absolute_header_link():
    page = StubPage(url="https://acme.com/pricing", scripts={
        dom_scripts.SITE_URL_CANDIDATES: {"header": "https://acme.com/home", "canonical": "https://acme.com/"},
    })
    assert _extractor().refine_site_url(page) == "https://acme.com/home"

    page.scripts[dom_scripts.SITE_URL_CANDIDATES] = {"header": "/", "canonical": "https://acme.com/"}
    assert _extractor().refine_site_url(page) == "https://acme.com/"


def test_page_source_scan_filters_placeholders():
    html = '<script>window.cfg={"a":"test@example.com","b":"support@acme.com"}</script>'
    assert _extractor().scan_page_source(html) == "support@acme.com"


def test_extract_returns_empty_bundle_on_navigation_failure():
    nav = StubNavigator({HOME: NavigationError(HOME, NavigationFailure.CONNECTION_REFUSED)})
    ops = MagicMock()
    bundle = _extractor(navigator=nav, ops=ops).extract(HOME)
    assert bundle.is_empty()
    assert ops.event.call_args.args[0] == "navigation_failed"
