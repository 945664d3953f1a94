"""
Content fetcher for the scraping target.
Implements polite crawling with rate limiting and backoff.
"""

import time
import random
import logging
import threading
from typing import Optional, Tuple

import requests

from core.exceptions import PassCancelled

logger = logging.getLogger(__name__)


class ContentFetcher:
    """Polite HTML fetcher that respects rate limits and can be interrupted."""

    def __init__(self,
                 base_delay: Tuple[float, float] = (1.0, 2.0),
                 max_retries: int = 3,
                 timeout: int = 20,
                 user_agent: str = "KeikoBot/1.0",
                 stop_event: Optional[threading.Event] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize content fetcher.

        Args:
            base_delay: (min, max) seconds between requests
            max_retries: Maximum attempts per URL
            timeout: Request timeout in seconds
            user_agent: User-Agent string for requests
            stop_event: Shutdown signal; waits return early and raise PassCancelled
            session: Preconfigured requests session (tests)
        """
        self.base_delay = base_delay
        self.max_retries = max_retries
        self.timeout = timeout
        self.stop_event = stop_event or threading.Event()

        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
            "Accept-Language": "ja,en;q=0.8",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
        })

        # Rate limiting state
        self.last_request_time = 0.0
        self.backoff_until = 0.0
        self.consecutive_failures = 0

    def _sleep(self, seconds: float, checkpoint: str) -> None:
        if seconds <= 0:
            if self.stop_event.is_set():
                raise PassCancelled(checkpoint)
            return
        if self.stop_event.wait(seconds):
            raise PassCancelled(checkpoint)

    def _wait_politely(self) -> None:
        """Implement polite delays between requests."""
        current_time = time.time()

        if current_time < self.backoff_until:
            wait_time = self.backoff_until - current_time
            logger.info(f"In backoff period, waiting {wait_time:.1f}s")
            self._sleep(wait_time, "fetch backoff")

        time_since_last = time.time() - self.last_request_time
        min_delay = random.uniform(*self.base_delay)

        if time_since_last < min_delay:
            wait_time = min_delay - time_since_last
            logger.debug(f"Rate limiting: waiting {wait_time:.1f}s")
            self._sleep(wait_time, "fetch delay")
        elif self.stop_event.is_set():
            raise PassCancelled("fetch delay")

        self.last_request_time = time.time()

    def _handle_rate_limit(self, status_code: int) -> None:
        """Handle rate limiting responses with exponential backoff."""
        self.consecutive_failures += 1
        if status_code in (429, 403):
            backoff_time = min(600, 60 * (2 ** self.consecutive_failures))
            logger.warning(f"Rate limited (HTTP {status_code}), backing off for {backoff_time}s")
            self.backoff_until = time.time() + backoff_time
            raise requests.exceptions.RequestException(f"Rate limited: HTTP {status_code}")

        backoff_time = min(300, 30 * self.consecutive_failures)
        logger.warning(f"Server error (HTTP {status_code}), backing off for {backoff_time}s")
        self.backoff_until = time.time() + backoff_time
        raise requests.exceptions.RequestException(f"Server error: HTTP {status_code}")

    def fetch_text(self, url: str) -> str:
        """
        Fetch a page body with polite crawling and retries.

        Args:
            url: URL to fetch

        Returns:
            Decoded response body

        Raises:
            requests.exceptions.RequestException: After the last failed attempt
            PassCancelled: If the stop signal is set while waiting
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                self._wait_politely()

                logger.debug(f"Fetching {url} (attempt {attempt + 1}/{self.max_retries})")
                response = self.session.get(url, timeout=self.timeout)

                if response.status_code in (429, 403) or response.status_code >= 500:
                    self._handle_rate_limit(response.status_code)

                response.raise_for_status()
                if not response.encoding or response.encoding.lower() == 'iso-8859-1':
                    response.encoding = 'utf-8'

                self.consecutive_failures = 0
                logger.debug(f"Successfully fetched {url} ({len(response.text)} chars)")
                return response.text

            except requests.exceptions.RequestException as e:
                last_error = e
                logger.warning(f"Request failed for {url}: {e}")
                if attempt == self.max_retries - 1:
                    break
                self._sleep(2 ** attempt, "fetch retry")

        logger.error(f"Failed to fetch {url} after {self.max_retries} attempts")
        raise last_error

    def close(self) -> None:
        self.session.close()
