"""Single request/response cycle against the nuPortal REST API."""

import logging
import threading
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from nuportal.errors import ApiError, GatewayError, HttpError, TransportError
from nuportal.utils.timing import timed_operation

logger = logging.getLogger(__name__)

# Page-size ceiling appended to every request.
MAX_RESULTS = 250

SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
BODY_METHODS = ("POST", "PUT", "PATCH")

DEFAULT_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class RequestMetrics:
    """Running request counters for one gateway.

    Keeps totals only, so memory stays constant. Updates are serialized with
    a lock because one gateway may serve several threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.total_duration_ms = 0.0
        self.max_duration_ms = 0.0

    def record_request(self, duration_ms: float, success: bool) -> None:
        with self._lock:
            self.total_requests += 1
            self.total_duration_ms += duration_ms
            self.max_duration_ms = max(self.max_duration_ms, duration_ms)
            if success:
                self.successful_requests += 1
            else:
                self.failed_requests += 1

    @property
    def avg_duration_ms(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_duration_ms / self.total_requests

    def to_dict(self) -> dict:
        """Snapshot of the counters."""
        with self._lock:
            return {
                "total_requests": self.total_requests,
                "successful_requests": self.successful_requests,
                "failed_requests": self.failed_requests,
                "avg_duration_ms": round(self.avg_duration_ms, 2),
                "max_duration_ms": round(self.max_duration_ms, 2),
            }


class HttpGateway:
    """Performs HTTP calls and normalizes failures.

    Does not retry: transparent urllib3 retries are disabled so that every
    failure surfaces to the caller exactly once.
    """

    def __init__(self, timeout: float = 30, pool_maxsize: int = 10):
        """Initialize gateway.

        Args:
            timeout: Connect and read timeout in seconds
            pool_maxsize: Connection pool size per host
        """
        self.timeout = timeout
        self.metrics = RequestMetrics()

        self.session = requests.Session()
        adapter = HTTPAdapter(
            max_retries=Retry(total=0, raise_on_status=False),
            pool_maxsize=pool_maxsize,
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def send(
        self,
        url: str,
        method: str = "GET",
        query: Optional[dict] = None,
        body: Optional[dict] = None,
        headers: Optional[dict] = None,
        bearer_token: Optional[str] = None,
    ) -> Any:
        """Send a request and return the decoded JSON response.

        Args:
            url: Absolute request URL
            method: GET, POST, PUT, PATCH or DELETE
            query: Query parameters (``maxResults`` is always set to 250)
            body: Form fields for POST, PUT and PATCH requests
            headers: Headers overriding the defaults
            bearer_token: When given, sent as ``Authorization: Bearer``

        Returns:
            Decoded JSON (object or array)

        Raises:
            ValueError: On an unsupported method
            TransportError: Connection-level failure
            HttpError: Non-2xx response without a JSON body
            ApiError: Error reported by the API (including in-band errors)
        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        params = dict(query or {})
        params["maxResults"] = MAX_RESULTS

        request_headers = dict(DEFAULT_HEADERS)
        if bearer_token:
            request_headers["Authorization"] = f"Bearer {bearer_token}"
        if headers:
            request_headers.update(headers)

        data = body if method in BODY_METHODS and body else None

        logger.debug(
            f"Making {method} request",
            extra={"method": method, "url": url},
        )

        with timed_operation("http_request", logger) as timer:
            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    params=params,
                    data=data,
                    headers=request_headers,
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                response = None
                error = e

        if response is None:
            self.metrics.record_request(timer.duration_ms, success=False)
            logger.error(
                "API request failed",
                extra={
                    "method": method,
                    "url": url,
                    "error": str(error),
                    "duration_ms": round(timer.duration_ms, 2),
                },
            )
            status = error.response.status_code if error.response is not None else None
            raise TransportError(f"Request to {url} failed: {error}", status) from error

        try:
            payload = self._decode(response)
        except GatewayError as e:
            self.metrics.record_request(timer.duration_ms, success=False)
            logger.error(
                "API request returned an error",
                extra={
                    "method": method,
                    "url": url,
                    "status_code": response.status_code,
                    "error": str(e),
                    "duration_ms": round(timer.duration_ms, 2),
                },
            )
            raise

        self.metrics.record_request(timer.duration_ms, success=True)
        logger.info(
            "API request completed",
            extra={
                "method": method,
                "url": url,
                "status_code": response.status_code,
                "duration_ms": round(timer.duration_ms, 2),
                "response_size_bytes": len(response.content),
            },
        )
        return payload

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        """Decode a response body and classify API errors."""
        status = response.status_code
        text = response.text

        try:
            payload = response.json()
        except ValueError:
            if not response.ok:
                raise HttpError(
                    f"Received HTTP error code {status}", status_code=status, body=text
                )
            raise ApiError(text, status_code=status, body=text)

        if isinstance(payload, dict):
            # Errors are sometimes signalled in-band with HTTP 200.
            if "error_description" in payload:
                raise ApiError(
                    str(payload["error_description"]), status_code=status, body=text
                )
            if not response.ok:
                description = payload.get("error") or f"Received HTTP error code {status}"
                raise ApiError(str(description), status_code=status, body=text)
            return payload

        if isinstance(payload, list) and response.ok:
            return payload

        raise ApiError(
            f"Unexpected response payload (HTTP {status})", status_code=status, body=text
        )

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()
