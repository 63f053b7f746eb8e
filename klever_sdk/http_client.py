"""
RequestClient - JSON over HTTP with bounded exponential-backoff retry.
"""
import json
import logging
import time
import urllib.parse
from decimal import Decimal
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ._rate_limited_log import rate_limited_log
from .exceptions import HTTPStatusError, NetworkError
from .utils import canonical_json

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRIES = 3
LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")

_NO_BODY = object()


def validate_base_url(url: str, allow_insecure: bool = False) -> str:
    """
    Check that ``url`` is absolute and uses https.

    Plain http is accepted for local hosts or when ``allow_insecure`` is set.

    Returns:
        The url without a trailing slash

    Raises:
        ValueError: If the url is malformed or insecure
    """
    parsed = urllib.parse.urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid base URL: {url!r}")
    is_local = parsed.hostname in LOCAL_HOSTS
    if parsed.scheme != "https" and not (is_local or allow_insecure):
        raise ValueError(f"URL must use https:// for security (got: {parsed.scheme}://)")
    return url.rstrip("/")


class RequestClient:
    """
    Minimal JSON client for one base URL.

    Each attempt gets its own timeout. Failed attempts are retried up to
    ``retries`` extra times with a ``2**attempt`` second pause, except 4xx
    responses which are raised straight away.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        retries: int = DEFAULT_RETRIES,
        allow_insecure: bool = False,
        pool_size: int = 10,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the RequestClient

        Args:
            base_url: Endpoint root, e.g. "https://api.mainnet.klever.org"
            timeout: Per-attempt timeout in seconds
            headers: Extra headers sent with every request
            retries: Number of retries after the first attempt
            allow_insecure: Permit plain http for non-local hosts
            pool_size: Connection pool size for concurrent callers
            logger: Optional logger instance

        Raises:
            ValueError: If the base URL is malformed or insecure, or retries is negative
        """
        if retries < 0:
            raise ValueError("retries must be non-negative")
        self.base_url = validate_base_url(base_url, allow_insecure)
        self.timeout = timeout
        self.retries = retries
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.logger = logger or logging.getLogger(__name__)

        # Retrying happens in request(); the adapter only pools connections
        self.session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=pool_size,
            pool_maxsize=pool_size,
            max_retries=Retry(total=0, raise_on_status=False)
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    def request(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = _NO_BODY,
        timeout: Optional[float] = None
    ) -> Any:
        """
        Perform a request and decode its JSON response.

        Args:
            path: Path appended to the base URL
            method: HTTP method
            headers: Per-call headers merged over the base headers
            body: JSON-serialisable body; omitted entirely when not given
            timeout: Per-call timeout override in seconds

        Returns:
            Decoded JSON (floats as Decimal), or None for an empty body

        Raises:
            HTTPStatusError: On a 4xx response, or a 5xx once retries are spent
            NetworkError: On connection failures or malformed JSON once retries are spent
        """
        url = self.url_for(path)
        merged_headers = {**self.headers, **(headers or {})}
        data = None if body is _NO_BODY else canonical_json(body)
        attempt_timeout = self.timeout if timeout is None else timeout

        last_error: Optional[NetworkError] = None
        for attempt in range(self.retries + 1):
            try:
                return self._send(method, url, merged_headers, data, attempt_timeout)
            except HTTPStatusError as e:
                if e.is_client_error:
                    self.logger.debug(f"{method} {url} failed with client error {e.status_code}")
                    raise
                last_error = e
            except NetworkError as e:
                last_error = e

            if attempt < self.retries:
                wait_time = 2 ** attempt
                rate_limited_log(
                    f"Retrying {method} {url} after {wait_time}s: {last_error}",
                    level="warning",
                    logger_instance=self.logger
                )
                time.sleep(wait_time)

        self.logger.error(f"{method} {url} failed after {self.retries + 1} attempts: {last_error}")
        raise last_error

    def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        data: Optional[bytes],
        timeout: float
    ) -> Any:
        self.logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method, url, headers=headers, data=data, timeout=timeout
            )
        except requests.RequestException as e:
            raise NetworkError(
                f"Request failed: {e}", {"url": url, "method": method}
            ) from e

        if not response.ok:
            raise HTTPStatusError(
                response.status_code, response.text, {"url": url, "method": method}
            )

        if not response.text.strip():
            return None
        try:
            return json.loads(response.text, parse_float=Decimal)
        except ValueError as e:
            raise NetworkError(
                f"Invalid JSON response: {e}", {"url": url, "method": method}
            ) from e

    def get(self, path: str, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> Any:
        return self.request(path, method="GET", headers=headers, timeout=timeout)

    def post(
        self,
        path: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """POST ``body`` as JSON; a missing body is sent as ``null``."""
        return self.request(path, method="POST", headers=headers, body=body, timeout=timeout)

    def close(self) -> None:
        self.session.close()
