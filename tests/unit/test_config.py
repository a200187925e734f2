from pathlib import Path

import pytest

from src.config import ScopePredicates, load_config
from src.errors import ConfigurationError


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "cfg.yaml"
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_without_file_or_env():
    cfg = load_config(None, env={})
    assert cfg.listing.max_products == 10
    assert cfg.resolver.max_makers_per_entity == 3
    assert cfg.rate_limit.base_delay_ms == 3000
    assert cfg.navigation.retries == 3
    assert cfg.browser.headless is True
    assert cfg.delivery.verify_api_key is None


def test_yaml_values_then_env_overrides(tmp_path):
    path = _write(tmp_path, """
listing:
  max_products: 4
  target_url: https://www.producthunt.com/leaderboard/daily/2025/3/7/all
resolver:
  text_denylist: [bebop.ai, other.ai]
""")
    cfg = load_config(path, env={
        "LEADS_MAX_PRODUCTS": "7",
        "LEADS_HEADLESS": "false",
        "LEADS_DELAY_BETWEEN_REQUESTS_MS": "1500",
        "LEADS_DEBUG_DIR": "",
    })
    assert cfg.listing.max_products == 7
    assert cfg.listing.target_url.endswith("/2025/3/7/all")
    assert cfg.resolver.text_denylist == ["bebop.ai", "other.ai"]
    assert cfg.browser.headless is False
    assert cfg.rate_limit.base_delay_ms == 1500
    assert cfg.navigation.debug_dir is None


def test_email_tlds_are_normalized_and_deduped(tmp_path):
    path = _write(tmp_path, "contacts:\n  email_tlds: [com, .IO, com, ai]\n")
    assert load_config(path, env={}).contacts.email_tlds == ["com", "io", "ai"]


def test_missing_file_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "nope.yaml", env={})


def test_invalid_yaml_is_configuration_error(tmp_path):
    path = _write(tmp_path, "listing: [unclosed\n")
    with pytest.raises(ConfigurationError, match="invalid YAML"):
        load_config(path, env={})


def test_non_mapping_root_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, "- just\n- a list\n"), env={})


def test_bad_env_values_are_rejected():
    with pytest.raises(ConfigurationError, match="LEADS_HEADLESS"):
        load_config(None, env={"LEADS_HEADLESS": "maybe"})
    with pytest.raises(ConfigurationError, match="LEADS_MAX_PRODUCTS"):
        load_config(None, env={"LEADS_MAX_PRODUCTS": "ten"})


def test_schema_violation_is_configuration_error(tmp_path):
    path = _write(tmp_path, "listing:\n  max_scrolls: -1\n")
    with pytest.raises(ConfigurationError, match="invalid configuration"):
        load_config(path, env={})


def test_scope_predicates_render_css_selectors():
    sel = ScopePredicates(tags=["footer"], class_contains=["social"], class_exact=["links"],
                          id_contains=[], id_exact=["contact"], roles=["contentinfo"]).css_selectors()
    assert sel == ["footer", '[class*="social"]', ".links", "#contact", '[role="contentinfo"]']
