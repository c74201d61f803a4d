"""
Document sources: local files and SEC EDGAR.

SEC requires a User-Agent header with contact info and allows 10 requests
per second; the EDGAR source waits REQUEST_DELAY between requests and retries
rate-limit and server errors with exponential backoff.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = "BDCHoldingsPipeline research@example.com"
REQUEST_DELAY = 0.15  # 150ms between requests

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class DocumentFetchError(Exception):
    """A document could not be retrieved."""


class DocumentSource(ABC):
    """Anything that can turn a URL or path into document text."""

    @abstractmethod
    def fetch_document(self, url: str) -> str:
        ...


class FileDocumentSource(DocumentSource):
    """Reads documents from disk; accepts plain paths and file:// URLs."""

    def __init__(self, base_dir: Optional[Path] = None, encoding: str = "utf-8"):
        self.base_dir = Path(base_dir) if base_dir else None
        self.encoding = encoding

    def fetch_document(self, url: str) -> str:
        parsed = urlparse(url)
        path = Path(parsed.path if parsed.scheme == "file" else url)
        if self.base_dir and not path.is_absolute():
            path = self.base_dir / path
        if not path.exists():
            raise FileNotFoundError(f"Document not found: {path}")
        with open(path, "r", encoding=self.encoding, errors="replace") as f:
            return f.read()


class SECDocumentSource(DocumentSource):
    """Fetches filing documents from SEC EDGAR."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        max_retries: int = 2,
        initial_retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
        request_delay: float = REQUEST_DELAY,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.user_agent = user_agent
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self.request_delay = request_delay
        self.timeout = timeout
        self.session = session or requests.Session()
        self.sleep = sleep

    def get_sec_headers(self) -> dict:
        """Return headers required by SEC EDGAR."""
        return {
            "User-Agent": self.user_agent,
            "Accept-Encoding": "gzip, deflate",
        }

    def fetch_document(self, url: str) -> str:
        """
        Fetch a document, retrying transient failures.

        Args:
            url: Absolute EDGAR URL

        Returns:
            Response body as text

        Raises:
            DocumentFetchError: Non-retryable status or retries exhausted
        """
        last_error: Optional[str] = None
        for attempt in range(self.max_retries + 1):
            if self.request_delay:
                self.sleep(self.request_delay)
            try:
                response = self.session.get(url, headers=self.get_sec_headers(), timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if response.status_code == 200:
                    logger.info(f"Fetched {url} ({len(response.text):,} chars)")
                    return response.text
                if response.status_code not in RETRY_STATUS_CODES:
                    raise DocumentFetchError(f"HTTP {response.status_code} for {url}")
                last_error = f"HTTP {response.status_code}"

            if attempt == self.max_retries:
                break

            # Calculate backoff with jitter
            delay = min(self.initial_retry_delay * (2 ** attempt), self.max_retry_delay)
            sleep_time = delay * random.uniform(0.5, 1.5)
            logger.warning(
                f"{last_error} for {url} (attempt {attempt + 1}/{self.max_retries + 1}), "
                f"retrying in {sleep_time:.1f}s..."
            )
            self.sleep(sleep_time)

        logger.error(f"Giving up on {url} after {self.max_retries + 1} attempts: {last_error}")
        raise DocumentFetchError(f"Failed to fetch {url} after {self.max_retries + 1} attempts: {last_error}")
