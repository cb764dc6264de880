# sfbulk/extraction/client.py

import logging
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests

from sfbulk.config.settings import SilverfinSettings
from sfbulk.core.exceptions import TransportError

logger = logging.getLogger(__name__)


class SilverfinClient:
    """
    Thin accessor for the firm scoped Silverfin API.

    Every request carries the bearer token and asks for JSON. Failures are
    raised as TransportError; retrying is left to the caller.
    """

    def __init__(self,
                 settings: SilverfinSettings,
                 session: Optional[requests.Session] = None):
        self.base_url = settings.base_url
        self.api_root = settings.api_root
        self.timeout = settings.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {settings.token}",
            "Accept": "application/json",
        })
        logger.info(f"{self.__class__.__name__} initialized for {self.api_root}")

    def close(self) -> None:
        self.session.close()

    # --- URL helpers ---
    def api_url(self, path: str) -> str:
        """Joins an endpoint path to the firm scoped API root."""
        return f"{self.api_root}/{path.lstrip('/')}"

    def absolute_url(self, locator: str) -> str:
        """
        Normalizes a download locator. Absolute and protocol relative URLs
        keep their host, root relative ones ('/uploads/...') are resolved
        against the platform base address.
        """
        return urljoin(f"{self.base_url}/", locator)

    # --- Public API ---
    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self._make_request("GET", self.api_url(path), params=params)
        return self._decode_json(response)

    def post_json(self, path: str, body: Dict[str, Any]) -> Any:
        response = self._make_request("POST", self.api_url(path), json=body)
        return self._decode_json(response)

    def get_binary(self, locator: str) -> bytes:
        response = self._make_request("GET", self.absolute_url(locator))
        return response.content

    # --- Internals ---
    def _decode_json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Response is not valid JSON: {e}",
                                 method=response.request.method
                                 if response.request else "GET",
                                 url=response.url,
                                 status_code=response.status_code)

    def _make_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Issues one HTTP request and raises TransportError on any failure.

        Raises:
            TransportError: On timeouts, connection problems and 4xx/5xx.
        """
        logger.debug(f"{method} {url} params={kwargs.get('params')}")
        try:
            response = self.session.request(method,
                                            url,
                                            timeout=self.timeout,
                                            **kwargs)
            response.raise_for_status()  # Raises HTTPError for 4xx/5xx
            return response
        except requests.exceptions.Timeout:
            logger.error(f"Timeout requesting {method} {url}")
            raise TransportError(
                f"Request timed out after {self.timeout} seconds",
                method=method,
                url=url)
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            logger.warning(f"HTTP error {status_code} for {method} {url}")
            raise TransportError(f"HTTP error {status_code}",
                                 method=method,
                                 url=url,
                                 status_code=status_code)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request exception for {method} {url}: {e}")
            raise TransportError(f"Network request failed: {e}",
                                 method=method,
                                 url=url)
