from __future__ import annotations

import typing as t
from dataclasses import dataclass, field
from urllib.parse import urlparse
from urllib import robotparser

import httpx

from ..document import StaticDocument


DEFAULT_UA = "PXE-StaticFetcher/0.1 (+https://example.com)"


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    mime: str | None
    html: str | None
    headers: dict[str, str] = field(default_factory=dict)
    blocked_by_robots: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.blocked_by_robots and 200 <= self.status_code < 300 and bool(self.html)

    def to_document(self) -> StaticDocument:
        return StaticDocument(self.html or "", url=self.url)


class StaticFetcher:
    """Static profile-page fetcher with optional robots.txt enforcement.

    - Uses httpx for network IO
    - Forwards the session cookies (profile pages are behind a login)
    - Does NOT execute JavaScript; live pages go through PlaywrightFetcher
    """

    def __init__(
        self,
        *,
        timeout_s: float = 12.0,
        user_agent: str = DEFAULT_UA,
        respect_robots: bool = True,
        cookies: t.Mapping[str, str] | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.respect_robots = respect_robots
        self.cookies = dict(cookies or {})
        self._client = httpx.Client(timeout=self.timeout_s, headers={"User-Agent": self.user_agent})

    def close(self) -> None:
        self._client.close()

    def _robots_allows(self, url: str) -> bool:
        if not self.respect_robots:
            return True
        parsed = urlparse(url)
        robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"
        try:
            resp = self._client.get(robots_url)
        except httpx.HTTPError:
            return True
        if resp.status_code >= 400:
            return True
        rp = robotparser.RobotFileParser()
        rp.parse(resp.text.splitlines())
        return rp.can_fetch(self.user_agent, url) and rp.can_fetch("*", url)

    def _headers(self) -> dict[str, str]:
        if not self.cookies:
            return {}
        return {"cookie": "; ".join(f"{k}={v}" for k, v in self.cookies.items())}

    def fetch(self, url: str) -> FetchResult:
        if not self._robots_allows(url):
            return FetchResult(url=url, status_code=0, mime=None, html=None, blocked_by_robots=True)
        try:
            resp = self._client.get(url, headers=self._headers(), follow_redirects=True)
        except httpx.HTTPError as e:
            return FetchResult(url=url, status_code=0, mime=None, html=None, error=f"network error: {e}")
        mime = resp.headers.get("Content-Type")
        mime_main = mime.split(";")[0].strip().lower() if mime else None
        html_text = resp.text if mime_main == "text/html" else None
        return FetchResult(
            url=str(resp.request.url),
            status_code=resp.status_code,
            mime=mime_main,
            html=html_text,
            headers={k: v for k, v in resp.headers.items()},
            error=None if resp.status_code < 400 else f"HTTP {resp.status_code}",
        )
