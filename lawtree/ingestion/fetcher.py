"""HTTP page fetcher backed by a single httpx session."""

from __future__ import annotations

import logging
import time
from typing import Callable

import httpx
from bs4 import BeautifulSoup

from .base import PageFetcher, PageHandle
from .errors import ExpansionTimeout, FetchTimeout, NavigationError
from ..utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class HttpPageFetcher(PageFetcher):
    """Fetch pages sequentially through one httpx.Client.

    Args:
        rate_limiter: Pacer applied after every page load.
        user_agent: User-Agent header sent with every request.
        client: Pre-built client (tests pass one with a MockTransport).
        sleep: Sleep function used between expansion polls.
        clock: Monotonic clock used for expansion deadlines.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate_limiter = rate_limiter or RateLimiter()
        self.client = client or httpx.Client(
            follow_redirects=True,
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.5",
            },
        )
        self._sleep = sleep
        self._clock = clock
        self.requests = 0

    def fetch(self, url: str, timeout: float) -> PageHandle:
        """Load ``url`` and parse it.

        Raises:
            FetchTimeout: The response did not complete within ``timeout`` seconds.
            NavigationError: Transport error or non-2xx status.
        """
        logger.debug("Fetching %s", url)
        self.requests += 1
        try:
            response = self.client.get(url, timeout=timeout)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise FetchTimeout(url, f"timed out after {timeout:.0f}s") from e
        except httpx.HTTPStatusError as e:
            raise NavigationError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NavigationError(url, str(e) or e.__class__.__name__) from e

        page = PageHandle(str(response.url), BeautifulSoup(response.text, "lxml"))
        self.rate_limiter.pause()
        return page

    def expand(
        self,
        url: str,
        ready: Callable[[PageHandle], bool],
        timeout: float,
        poll_interval: float = 0.5,
    ) -> PageHandle:
        """Poll the lazy-load endpoint until ``ready`` holds or ``timeout`` elapses."""
        deadline = self._clock() + timeout
        polls = 0
        while True:
            remaining = max(deadline - self._clock(), 0.1)
            page = self.fetch(url, timeout=remaining)
            polls += 1
            if ready(page):
                logger.debug("Expansion %s ready after %d poll(s)", url, polls)
                return page
            if self._clock() + poll_interval >= deadline:
                raise ExpansionTimeout(
                    f"no children at {url} after {polls} poll(s) in {timeout:.0f}s"
                )
            self._sleep(poll_interval)

    def close(self) -> None:
        self.client.close()
