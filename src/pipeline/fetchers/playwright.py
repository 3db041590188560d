from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional
from urllib.parse import urlparse

from playwright.sync_api import sync_playwright, Browser, ElementHandle, Error as PlaywrightError, Page

from ..document import Fragment, MutationBatch, MutationCallback, Subscription, normalize_space


DEFAULT_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"

# Leaf elements with their viewport-relative top, collected in one round trip
_FRAGMENTS_JS = """
() => {
  const skip = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE']);
  const inline = new Set(['BR', 'WBR', 'STRONG', 'B', 'EM', 'I', 'U', 'A', 'SMALL', 'MARK', 'CODE', 'SUB', 'SUP', 'ABBR']);
  const isBlock = (el) => Array.from(el.children).every((c) => inline.has(c.tagName) && isBlock(c));
  const out = [];
  if (!document.body) return out;
  for (const el of [document.body, ...document.body.querySelectorAll('*')]) {
    if (skip.has(el.tagName) || !isBlock(el)) continue;
    if (el !== document.body && el.parentElement && isBlock(el.parentElement)) continue;
    const text = (el.innerText || el.textContent || '').replace(/\\s+/g, ' ').trim();
    if (!text) continue;
    out.push({ text, top: el.getBoundingClientRect().top });
  }
  return out;
}
"""

_BINDING_NAME = "__pxeMutations"

_OBSERVE_JS = """
() => {
  if (window.__pxeObserver) window.__pxeObserver.disconnect();
  window.__pxeObserver = new MutationObserver((records) => {
    let added = 0;
    for (const r of records) {
      if (r.type === 'childList') added += r.addedNodes.length;
    }
    if (added > 0) window.__pxeMutations({ added });
  });
  window.__pxeObserver.observe(document.body, { childList: true, subtree: true });
}
"""

_DISCONNECT_JS = "() => { if (window.__pxeObserver) { window.__pxeObserver.disconnect(); window.__pxeObserver = null; } }"


class PageDocument:
    """Document interface over a live Playwright page (sync API)."""

    def __init__(self, page: Page) -> None:
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    def query_first(self, selector: str, root: Optional[ElementHandle] = None) -> Optional[ElementHandle]:
        try:
            return (root or self.page).query_selector(selector)
        except PlaywrightError:
            return None

    def query_all(self, selector: str, root: Optional[ElementHandle] = None) -> List[ElementHandle]:
        try:
            return list((root or self.page).query_selector_all(selector))
        except PlaywrightError:
            return []

    def text(self, node: Optional[ElementHandle]) -> str:
        if node is None:
            return ""
        return normalize_space(node.text_content())

    def attr(self, node: Optional[ElementHandle], name: str) -> Optional[str]:
        if node is None:
            return None
        return node.get_attribute(name)

    def closest(self, node: Optional[ElementHandle], tag: str) -> Optional[ElementHandle]:
        if node is None:
            return None
        handle = node.evaluate_handle("(el, tag) => el.closest(tag)", tag)
        return handle.as_element()

    def vertical_offset(self, node: Optional[ElementHandle]) -> Optional[float]:
        if node is None:
            return None
        box = node.bounding_box()
        return float(box["y"]) if box else None

    def viewport_height(self) -> float:
        size = self.page.viewport_size
        if size:
            return float(size["height"])
        return float(self.page.evaluate("() => window.innerHeight"))

    def text_fragments(self) -> List[Fragment]:
        rows = self.page.evaluate(_FRAGMENTS_JS) or []
        return [Fragment(text=normalize_space(r.get("text")), top=float(r.get("top") or 0.0)) for r in rows]


class PageMutationSource:
    """Delivers MutationObserver batches from the page to Python subscribers.

    Callbacks run while the sync API is blocked in a page call (for example
    page.wait_for_timeout), never concurrently with engine code.
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        self._subscribers: Dict[int, MutationCallback] = {}
        self._bound = False

    def _on_binding(self, payload: Any) -> None:
        added = int((payload or {}).get("added") or 0)
        batch = MutationBatch(added_nodes=added, target="body")
        for cb in list(self._subscribers.values()):
            cb(batch)

    def subscribe(self, callback: MutationCallback) -> Subscription:
        if not self._bound:
            self.page.expose_function(_BINDING_NAME, self._on_binding)
            self._bound = True
        sub = Subscription(self._remove)
        self._subscribers[id(sub)] = callback
        self.page.evaluate(_OBSERVE_JS)
        return sub

    def _remove(self, sub: Subscription) -> None:
        self._subscribers.pop(id(sub), None)
        if self._subscribers:
            return
        try:
            self.page.evaluate(_DISCONNECT_JS)
        except PlaywrightError:
            # Page already closed
            pass


@dataclass(frozen=True)
class PlaywrightResult:
    url: str
    status_code: int
    html: str | None
    page_title: str | None
    error: str | None = None


@dataclass
class LiveSession:
    page: Page
    document: PageDocument
    mutations: PageMutationSource

    def pump(self, seconds: float) -> None:
        """Block while letting the page dispatch mutation callbacks."""
        self.page.wait_for_timeout(max(0.0, seconds) * 1000)


class PlaywrightFetcher:
    """Headless browser access for JavaScript-rendered profile pages.

    Uses Playwright with security-first settings:
    - Sandbox enabled (no --no-sandbox)
    - Extensions and plugins disabled
    - Headless by default
    """

    LAUNCH_ARGS = [
        '--disable-dev-shm-usage',
        '--disable-gpu',
        '--disable-extensions',
        '--disable-plugins',
        '--no-first-run',
        '--disable-default-apps',
    ]

    def __init__(
        self,
        *,
        timeout_ms: int = 20000,
        user_agent: str = DEFAULT_UA,
        cookies: Mapping[str, str] | None = None,
        headless: bool = True,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent
        self.cookies = dict(cookies or {})
        self.headless = headless

    def _launch(self, p: Any) -> Browser:
        return p.chromium.launch(headless=self.headless, args=list(self.LAUNCH_ARGS))

    def _cookie_records(self, url: str) -> List[Dict[str, str]]:
        parsed = urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        return [{"name": k, "value": v, "url": origin} for k, v in self.cookies.items()]

    def _open_page(self, browser: Browser, url: str) -> Page:
        context = browser.new_context(user_agent=self.user_agent)
        if self.cookies:
            context.add_cookies(self._cookie_records(url))
        return context.new_page()

    def fetch(self, url: str) -> PlaywrightResult:
        """Load the page once and return the rendered HTML snapshot."""
        try:
            with sync_playwright() as p:
                browser = self._launch(p)
                try:
                    page = self._open_page(browser, url)
                    response = page.goto(url, wait_until="load", timeout=self.timeout_ms)
                    if not response:
                        return PlaywrightResult(url=url, status_code=0, html=None, page_title=None, error="No response received")
                    # Profile top card renders late; wait briefly for the heading
                    try:
                        page.wait_for_selector("main h1, h1", timeout=2000)
                    except PlaywrightError:
                        pass
                    return PlaywrightResult(
                        url=page.url,
                        status_code=response.status,
                        html=page.content(),
                        page_title=page.title(),
                    )
                finally:
                    browser.close()
        except Exception as e:
            return PlaywrightResult(url=url, status_code=0, html=None, page_title=None, error=str(e))

    @contextmanager
    def open_live(self, url: str) -> Iterator[LiveSession]:
        """Keep a page open for watch mode; closed when the block exits."""
        with sync_playwright() as p:
            browser = self._launch(p)
            try:
                page = self._open_page(browser, url)
                page.goto(url, wait_until="load", timeout=self.timeout_ms)
                yield LiveSession(page=page, document=PageDocument(page), mutations=PageMutationSource(page))
            finally:
                browser.close()
