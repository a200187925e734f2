from __future__ import annotations

import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from playwright.sync_api import sync_playwright, Browser, BrowserContext, Page, Playwright
from selectolax.parser import HTMLParser

from src.config import BrowserSettings, NavigationSettings
from src.errors import NavigationError, NavigationFailure, classify_navigation_error
from src.ops_logger import OpsLogger
from src.pipeline import dom_scripts
from src.pipeline.detection import PageFlags, inspect_page
from src.pipeline.heuristics import host_of, origin_of


class WaitStrategy(str, Enum):
    """Load-completion strategies, lightest first."""
    CONTENT_LOADED = "domcontentloaded"
    NETWORK_IDLE_WEAK = "load"
    NETWORK_IDLE_STRICT = "networkidle"

    def stricter(self) -> "WaitStrategy":
        order = list(WaitStrategy)
        idx = order.index(self)
        return order[min(idx + 1, len(order) - 1)]


class BrowserSession:
    """Owns the Playwright driver, one Chromium browser and one context.

    Launch settings keep the sandbox enabled (no --no-sandbox); the context
    carries a desktop user agent, viewport and browser-like headers.
    """

    def __init__(self, settings: Optional[BrowserSettings] = None) -> None:
        self.settings = settings or BrowserSettings()
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    def start(self) -> "BrowserSession":
        if self._context is not None:
            return self
        s = self.settings
        self._pw = sync_playwright().start()
        self._browser = self._pw.chromium.launch(headless=s.headless, args=list(s.launch_args))
        self._context = self._browser.new_context(
            user_agent=s.user_agent,
            viewport={"width": s.viewport_width, "height": s.viewport_height},
            extra_http_headers=dict(s.extra_headers),
        )
        return self

    def open_page(self) -> Page:
        if self._context is None:
            self.start()
        return self._context.new_page()

    def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        if self._context is None:
            self.start()
        self._context.add_cookies(cookies)

    def close(self) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            if self._pw is not None:
                self._pw.stop()
            self._pw = self._browser = self._context = None

    def __enter__(self) -> "BrowserSession":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()


class RenderedPage:
    """Narrow capability over a loaded tab: snapshots, scripts, scrolling."""

    def __init__(self, page: Page, flags: Optional[PageFlags] = None) -> None:
        self._page = page
        self.flags = flags or PageFlags()

    @property
    def url(self) -> str:
        return self._page.url

    @property
    def captcha_detected(self) -> bool:
        return self.flags.captcha_detected

    @property
    def blocked(self) -> bool:
        return self.flags.blocked

    def html(self) -> str:
        return self._page.content()

    def snapshot(self) -> HTMLParser:
        return HTMLParser(self.html())

    def text(self) -> str:
        return self.evaluate(dom_scripts.BODY_TEXT) or ""

    def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return self._page.evaluate(script)
        return self._page.evaluate(script, arg)

    def scroll_height(self) -> int:
        return int(self.evaluate(dom_scripts.SCROLL_HEIGHT) or 0)

    def scroll_to(self, y: int) -> None:
        self.evaluate(dom_scripts.SCROLL_TO, y)

    def pause(self, ms: int) -> None:
        if ms > 0:
            self._page.wait_for_timeout(ms)

    def goto(self, url: str, wait: WaitStrategy = WaitStrategy.CONTENT_LOADED, timeout_ms: int = 45000) -> str:
        self._page.goto(url, wait_until=wait.value, timeout=timeout_ms)
        return self._page.url

    def go_back(self, wait: WaitStrategy = WaitStrategy.CONTENT_LOADED, timeout_ms: int = 45000) -> None:
        self._page.go_back(wait_until=wait.value, timeout=timeout_ms)

    def screenshot(self, path: Path) -> None:
        self._page.screenshot(path=str(path), full_page=True)


class Navigator:
    """Opens URLs in scoped tabs with escalating wait strategies.

    Each attempt after the first uses a stricter wait strategy. An overall
    monotonic deadline caps the whole open() including retries; once it has
    passed no further attempt starts.
    """

    def __init__(
        self,
        session: BrowserSession,
        settings: Optional[NavigationSettings] = None,
        *,
        ops: Optional[OpsLogger] = None,
        clock: Callable[[], float] = time.monotonic,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.settings = settings or NavigationSettings()
        self.ops = ops
        self._clock = clock
        self._sleep = sleeper

    @contextmanager
    def open(
        self,
        url: str,
        *,
        wait: WaitStrategy = WaitStrategy.CONTENT_LOADED,
        timeout_ms: Optional[int] = None,
        retries: Optional[int] = None,
        cookies: Optional[Dict[str, str]] = None,
    ) -> Iterator[RenderedPage]:
        """Yield a RenderedPage for ``url``; the tab is closed on every exit path.

        Raises NavigationError when every attempt failed or the hard deadline
        passed.
        """
        if cookies:
            origin = origin_of(url)
            if origin:
                self.session.add_cookies([{"name": k, "value": v, "url": origin} for k, v in cookies.items()])
        page = self.session.open_page()
        try:
            self._load(page, url, wait, timeout_ms or self.settings.attempt_timeout_ms,
                       retries or self.settings.retries)
            rendered = RenderedPage(page, self._inspect(page))
            if rendered.captcha_detected or rendered.blocked:
                self._on_flagged(rendered, url)
            yield rendered
        finally:
            try:
                page.close()
            except Exception:
                pass

    def _load(self, page: Page, url: str, wait: WaitStrategy, timeout_ms: int, retries: int) -> None:
        deadline = self._clock() + self.settings.hard_timeout_ms / 1000.0
        strategy = wait
        last_exc: Optional[BaseException] = None
        for attempt in range(1, retries + 1):
            remaining_ms = int((deadline - self._clock()) * 1000)
            if remaining_ms <= 0:
                break
            try:
                page.goto(url, wait_until=strategy.value, timeout=min(timeout_ms, remaining_ms))
                return
            except Exception as e:
                last_exc = e
                kind = classify_navigation_error(e)
                print(f"  ⚠️  Navigation attempt {attempt}/{retries} failed ({kind.value}, wait={strategy.value}): {url}")
                if self.ops:
                    self.ops.event("navigation_retry", url=url, error=e, attempt=attempt, wait=strategy.value)
                strategy = strategy.stricter()
                if attempt < retries:
                    left = deadline - self._clock()
                    pause = min(self.settings.retry_pause_ms / 1000.0, max(0.0, left))
                    if pause > 0:
                        self._sleep(pause)
        if last_exc is None:
            error = NavigationError(url, NavigationFailure.TIMEOUT, "hard deadline exceeded")
        else:
            error = NavigationError(url, classify_navigation_error(last_exc), str(last_exc)[:300])
        if self.settings.debug_dir:
            shot = Path(self.settings.debug_dir) / f"error_{error.kind.value}_{host_of(url) or 'page'}_{int(time.time())}.png"
            try:
                shot.parent.mkdir(parents=True, exist_ok=True)
                page.screenshot(path=str(shot))
            except Exception as e:
                print(f"  ⚠️  Screenshot failed: {e}")
        raise error

    def _inspect(self, page: Page) -> PageFlags:
        try:
            text = page.evaluate(dom_scripts.BODY_TEXT) or ""
            return inspect_page(text, page.content(), page.url)
        except Exception:
            return PageFlags()

    def _on_flagged(self, rendered: RenderedPage, url: str) -> None:
        label = "captcha" if rendered.captcha_detected else "blocked"
        print(f"  🚧 {label} markers on {url}: {rendered.flags.reasons[:3]}")
        shot = None
        if self.settings.debug_dir:
            shot = Path(self.settings.debug_dir) / f"{label}_{host_of(url) or 'page'}_{int(time.time())}.png"
            try:
                shot.parent.mkdir(parents=True, exist_ok=True)
                rendered.screenshot(shot)
            except Exception as e:
                print(f"  ⚠️  Screenshot failed: {e}")
                shot = None
        if self.ops:
            self.ops.event("page_flags", url=url, captcha=rendered.captcha_detected,
                           blocked=rendered.blocked, reasons=rendered.flags.reasons,
                           screenshot=str(shot) if shot else None)
