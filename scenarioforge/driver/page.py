import logging
from typing import Any, Optional, Protocol

from playwright.sync_api import sync_playwright, Page


class PageDriver(Protocol):
    """The page capabilities validation needs. Any automation engine can provide them."""

    def goto(self, url: str) -> None: ...

    def query_selector(self, selector: str) -> Optional[Any]: ...

    def get_attribute(self, handle: Any, name: str) -> Optional[str]: ...

    def text_content(self, handle: Any) -> Optional[str]: ...

    def click(self, selector: str) -> None: ...

    def fill(self, selector: str, value: str) -> None: ...

    def hover(self, selector: str) -> None: ...

    def select_option(self, selector: str, value: str) -> None: ...

    def close(self) -> None: ...


class PageProvider(Protocol):
    def open_page(self) -> PageDriver: ...


class PlaywrightPage:
    def __init__(self, page: Page, navigation_timeout_ms: int = 30000, step_timeout_ms: int = 10000,
                 wait_until: str = "networkidle", logger: logging.Logger = None):
        self.page = page
        self.navigation_timeout_ms = navigation_timeout_ms
        self.step_timeout_ms = step_timeout_ms
        self.wait_until = wait_until
        self.logger = logger or logging.getLogger(__name__)

    def goto(self, url: str) -> None:
        self.logger.info("Navigating to %s...", url)
        self.page.goto(url, wait_until=self.wait_until, timeout=self.navigation_timeout_ms)

    def query_selector(self, selector: str):
        return self.page.query_selector(selector)

    def get_attribute(self, handle, name: str) -> Optional[str]:
        return handle.get_attribute(name)

    def text_content(self, handle) -> Optional[str]:
        return handle.text_content()

    def click(self, selector: str) -> None:
        self.page.click(selector, timeout=self.step_timeout_ms)

    def fill(self, selector: str, value: str) -> None:
        self.page.fill(selector, value, timeout=self.step_timeout_ms)

    def hover(self, selector: str) -> None:
        self.page.hover(selector, timeout=self.step_timeout_ms)

    def select_option(self, selector: str, value: str) -> None:
        self.page.select_option(selector, value, timeout=self.step_timeout_ms)

    def close(self) -> None:
        try:
            if not self.page.is_closed():
                self.page.close()
        except Exception as e:
            self.logger.warning("Error closing page: %s", e)


class PlaywrightBrowser:
    """
    Owns one chromium process and hands out isolated pages.

    Use as a context manager so the browser is released on every exit path:

        with PlaywrightBrowser() as browser:
            page = browser.open_page()
    """

    def __init__(self, headless: bool = True, ignore_https_errors: bool = False,
                 navigation_timeout_ms: int = 30000, step_timeout_ms: int = 10000,
                 logger: logging.Logger = None):
        self.headless = headless
        self.ignore_https_errors = ignore_https_errors
        self.navigation_timeout_ms = navigation_timeout_ms
        self.step_timeout_ms = step_timeout_ms
        self.logger = logger or logging.getLogger(__name__)
        self._playwright = None
        self._browser = None
        self._context = None

    def __enter__(self) -> "PlaywrightBrowser":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def start(self) -> None:
        if self._context is not None:
            return
        self.logger.info("Launching chromium (headless=%s)...", self.headless)
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            context_options = {"viewport": {"width": 1280, "height": 720}}
            if self.ignore_https_errors:
                context_options["ignore_https_errors"] = True
            self._context = self._browser.new_context(**context_options)
        except Exception:
            self.close()
            raise

    def open_page(self) -> PlaywrightPage:
        if self._context is None:
            self.start()
        page = self._context.new_page()
        page.set_default_timeout(self.step_timeout_ms)
        page.set_default_navigation_timeout(self.navigation_timeout_ms)
        return PlaywrightPage(
            page,
            navigation_timeout_ms=self.navigation_timeout_ms,
            step_timeout_ms=self.step_timeout_ms,
            logger=self.logger,
        )

    def close(self) -> None:
        for name in ("_context", "_browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                self.logger.warning("Error closing %s: %s", name.strip("_"), e)
            setattr(self, name, None)
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                self.logger.warning("Error stopping playwright: %s", e)
            self._playwright = None
