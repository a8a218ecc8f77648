"""Fetching of extra URL inputs from an HTTP endpoint.

An application can expose its dynamic pages (e.g. blog posts stored in a
database) as a JSON array at an endpoint. The array items are URL inputs:
either plain paths or objects with 'loc' and optional entry fields.
The endpoint is fetched before the build starts.
"""

import logging
import time
from typing import Any, List, Optional

import requests

from sitemap_models import SitemapError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: int = 10
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0
USER_AGENT: str = 'SitemapBuilder/1.0'


class UrlSourceError(SitemapError):
    """Raised when URL inputs cannot be fetched from an endpoint."""


def fetch_api_urls(
    endpoint: str,
    timeout: int = DEFAULT_TIMEOUT,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    session: Optional[requests.Session] = None
) -> List[Any]:
    """Fetch URL inputs from a JSON endpoint.

    Connection errors and timeouts are retried with exponential backoff.
    HTTP errors are not retried.

    Args:
        endpoint: URL returning a JSON array of URL inputs.
        timeout: Request timeout in seconds.
        max_retries: Number of attempts for connection errors and timeouts.
        retry_delay: Initial delay between attempts in seconds.
        session: Optional session to reuse (default: a new session).

    Returns:
        The URL inputs as returned by the endpoint.

    Raises:
        UrlSourceError: If the endpoint cannot be fetched or returns
            something other than a JSON array.
    """
    own_session = session is None
    if own_session:
        session = requests.Session()
        session.headers.update({'User-Agent': USER_AGENT, 'Accept': 'application/json'})

    try:
        for attempt in range(max_retries):
            try:
                response = session.get(endpoint, timeout=timeout)
                response.raise_for_status()
                break
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                if attempt < max_retries - 1:
                    wait_time = retry_delay * (2 ** attempt)
                    logger.info(f"Retry {attempt + 1}/{max_retries} for {endpoint} after {wait_time:.1f}s")
                    time.sleep(wait_time)
                    continue
                raise UrlSourceError(f"Failed to fetch {endpoint} after {max_retries} attempts: {e}") from e
            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else 'unknown'
                raise UrlSourceError(f"Error fetching {endpoint}: HTTP {status_code}") from e
        else:
            raise UrlSourceError(f"No attempt was made to fetch {endpoint} (max_retries={max_retries})")

        try:
            payload = response.json()
        except ValueError as e:
            raise UrlSourceError(f"Endpoint {endpoint} did not return JSON: {e}") from e
    finally:
        if own_session:
            session.close()

    if not isinstance(payload, list):
        raise UrlSourceError(f"Endpoint {endpoint} must return a JSON array, got {type(payload).__name__}")
    logger.info(f"Fetched {len(payload)} URL inputs from {endpoint}")
    return payload
