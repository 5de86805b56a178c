"""Document store client for a JSON-over-HTTP listings service."""

from typing import Any, Dict, List, Optional

import requests

from .logger import get_logger
from .retry import RetryError, exponential_backoff, should_retry_http_status
from .store import Filter, OrderBy, StoreUnavailable, validate_limit

logger = get_logger()


class RetryableStatus(Exception):
    """Raised inside the retry loop for 408/429/5xx responses."""

    def __init__(self, response: requests.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code} from {response.url}")


def _log_retry(attempt: int, error: Exception, delay: float) -> None:
    logger.warning("Retrying store request", attempt=attempt, delay=delay, error=str(error))


@exponential_backoff(
    max_retries=3,
    base_delay=1.0,
    exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, RetryableStatus),
    on_retry=_log_retry,
)
def _send_with_retry(session: requests.Session, method: str, url: str, **kwargs) -> requests.Response:
    """Send a request, retrying transport errors and retryable statuses."""
    resp = session.request(method, url, **kwargs)
    if should_retry_http_status(resp.status_code):
        raise RetryableStatus(resp)
    return resp


class HttpDocumentStore:
    """
    Reads listings from a remote document service.

    Queries are POSTed to ``{base_url}/collections/{collection}:query`` with a
    body of ``{"filter": ..., "orderBy": ..., "limit": n}`` and answered with
    ``{"documents": [...]}``. Single documents live at
    ``{base_url}/collections/{collection}/{id}``.
    """

    def __init__(
        self,
        base_url: str,
        collection: str = "listings",
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.collection = collection
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def collection_url(self) -> str:
        return f"{self.base_url}/collections/{self.collection}"

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send with retries; every failure surfaces as StoreUnavailable."""
        try:
            resp = _send_with_retry(self.session, method, url, timeout=self.timeout, **kwargs)
        except RetryError as e:
            logger.error("Store request failed after retries", url=url, error=str(e))
            raise StoreUnavailable(f"Store request failed: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error("Store request error", url=url, error=str(e))
            raise StoreUnavailable(f"Store request error: {e}") from e
        return resp

    def query(
        self,
        filter: Optional[Filter] = None,
        order_by: Optional[OrderBy] = None,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        validate_limit(limit)
        body: Dict[str, Any] = {"limit": limit}
        if filter is not None:
            body["filter"] = filter.to_json()
        if order_by is not None:
            body["orderBy"] = order_by.to_json()

        url = f"{self.collection_url}:query"
        resp = self._send("POST", url, json=body)
        try:
            resp.raise_for_status()
            documents = resp.json().get("documents", [])
        except requests.exceptions.HTTPError as e:
            logger.error("Store query rejected", url=url, status=resp.status_code)
            raise StoreUnavailable(f"Store query failed ({resp.status_code}): {url}") from e
        except ValueError as e:
            logger.error("Store returned invalid JSON", url=url)
            raise StoreUnavailable(f"Store returned invalid JSON: {url}") from e

        if not isinstance(documents, list):
            raise StoreUnavailable(f"Store returned malformed documents: {url}")
        return [d for d in documents if isinstance(d, dict)][:limit]

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        url = f"{self.collection_url}/{doc_id}"
        resp = self._send("GET", url)
        if resp.status_code == 404:
            return None
        try:
            resp.raise_for_status()
            document = resp.json()
        except requests.exceptions.HTTPError as e:
            logger.error("Store fetch rejected", url=url, status=resp.status_code)
            raise StoreUnavailable(f"Store fetch failed ({resp.status_code}): {url}") from e
        except ValueError as e:
            raise StoreUnavailable(f"Store returned invalid JSON: {url}") from e
        if not isinstance(document, dict):
            raise StoreUnavailable(f"Store returned malformed document: {url}")
        document.setdefault("id", str(doc_id))
        return document
