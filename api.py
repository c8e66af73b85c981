"""HTTP plumbing for the admin REST API: URLs, auth headers and the client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional
from urllib.parse import urlencode

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import Settings
from errors import ApiError, raise_for_response

if TYPE_CHECKING:
    from queries import CancelToken

logger = logging.getLogger(__name__)

USER_AGENT = "eduhub-admin-client/0.1 (+python-requests)"


def normalize_base_url(base: str) -> str:
    base = (base or "").strip().rstrip("/")
    if base.endswith("/api"):
        return base
    return f"{base}/api"


def build_url(base: str, endpoint: str) -> str:
    return f"{normalize_base_url(base)}/{endpoint.lstrip('/')}"


def build_endpoint(path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Append non-empty ``params`` to ``path`` as a query string."""
    if not params:
        return path
    pairs = [(key, value) for key, value in params.items() if value is not None and value != ""]
    if not pairs:
        return path
    query = urlencode(pairs, doseq=True)
    separator = "&" if "?" in path else "?"
    return f"{path}{separator}{query}"


def auth_headers(token: Optional[str], scheme: str = "Bearer") -> Dict[str, str]:
    if not token or not token.strip():
        return {}
    return {"Authorization": f"{scheme} {token.strip()}"}


def make_session(verify: bool = True, proxy: Optional[str] = None, retries: int = 0) -> requests.Session:
    sess = requests.Session()
    retry = Retry(total=retries, backoff_factor=1, status_forcelist=[429, 502, 503, 504], allowed_methods=["GET"])
    sess.mount("http://", HTTPAdapter(max_retries=retry))
    sess.mount("https://", HTTPAdapter(max_retries=retry))
    sess.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    if proxy:
        sess.proxies.update({"http": proxy, "https": proxy})
    sess.verify = verify
    return sess


class ApiClient:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or make_session(settings.verify_ssl, settings.proxy, settings.http_retries)

    def url_for(self, endpoint: str) -> str:
        return build_url(self.settings.api_url, endpoint)

    def headers_for(self, token: Optional[str]) -> Dict[str, str]:
        return auth_headers(token, self.settings.auth_scheme)

    def request(
        self,
        method: str,
        endpoint: str,
        token: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
        cancel: Optional["CancelToken"] = None,
    ) -> Any:
        url = self.url_for(build_endpoint(endpoint, params))
        headers = self.headers_for(token)
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": self.settings.request_timeout}
        if files:
            # multipart: requests sets the Content-Type boundary itself
            kwargs["files"] = files
            if data:
                kwargs["data"] = data
        elif json is not None:
            kwargs["json"] = json
        elif data is not None:
            kwargs["json"] = dict(data)

        if cancel is not None:
            cancel.raise_if_cancelled()
        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(f"Request to {url} failed: {exc}") from exc
        if cancel is not None:
            cancel.raise_if_cancelled()

        raise_for_response(resp, f"{method} {endpoint} failed")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(f"Invalid JSON from {url}", status_code=resp.status_code) from exc

    def get(self, endpoint: str, **kwargs: Any) -> Any:
        return self.request("GET", endpoint, **kwargs)

    def post(self, endpoint: str, **kwargs: Any) -> Any:
        return self.request("POST", endpoint, **kwargs)

    def put(self, endpoint: str, **kwargs: Any) -> Any:
        return self.request("PUT", endpoint, **kwargs)

    def patch(self, endpoint: str, **kwargs: Any) -> Any:
        return self.request("PATCH", endpoint, **kwargs)

    def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return self.request("DELETE", endpoint, **kwargs)
