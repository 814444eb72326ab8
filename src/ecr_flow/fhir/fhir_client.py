"""Generic FHIR R4 HTTP client with bearer auth and search-bundle paging."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

import requests

from ..errors import RequestTimeoutError


logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"

SearchParams = Sequence[tuple[str, str]]


class FHIRClient:
    """Minimal FHIR R4 REST client for searching and reading resources."""

    search_timeout: float = 30.0
    read_timeout: float = 15.0

    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._session = session or requests.Session()

    def get_resource(
        self,
        resource_type: str,
        resource_id: str,
        timeout: float | None = None,
    ) -> dict:
        """GET a FHIR resource by type and logical ID and return its JSON."""
        url = f"{self.base_url}/{resource_type}/{resource_id}"
        response = self._request("GET", url, timeout or self.read_timeout)
        return response.json()

    def search(self, resource_type: str, params: SearchParams) -> Iterator[dict]:
        """GET-search `resource_type` and yield every page Bundle, following next links."""
        url = f"{self.base_url}/{resource_type}"
        response = self._request("GET", url, self.search_timeout, params=list(params))
        logger.info("GET %s", response.url)
        yield from self._paginate(response.json())

    def search_post(self, resource_type: str, form: SearchParams) -> Iterator[dict]:
        """POST-search `<resource_type>/_search` with a form body; later pages use GET."""
        url = f"{self.base_url}/{resource_type}/_search"
        logger.info("POST %s", url)
        response = self._request(
            "POST",
            url,
            self.search_timeout,
            data=list(form),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        yield from self._paginate(response.json())

    def _paginate(self, bundle: dict) -> Iterator[dict]:
        yield bundle
        seen: set[str] = set()
        next_url = next_link(bundle)
        while next_url:
            if next_url in seen:
                logger.warning("Stopping pagination: next link %s was already fetched", next_url)
                return
            seen.add(next_url)
            logger.debug("GET %s (next page)", next_url)
            bundle = self._request("GET", next_url, self.search_timeout).json()
            yield bundle
            next_url = next_link(bundle)

    def _request(
        self,
        method: str,
        url: str,
        timeout: float,
        headers: dict | None = None,
        **kwargs: object,
    ) -> requests.Response:
        request_headers = {"Accept": FHIR_JSON}
        if self._access_token:
            request_headers["Authorization"] = f"Bearer {self._access_token}"
        if headers:
            request_headers.update(headers)
        try:
            response = self._session.request(
                method, url, headers=request_headers, timeout=timeout, **kwargs
            )
        except requests.Timeout as exc:
            raise RequestTimeoutError(url, timeout) from exc
        response.raise_for_status()
        return response


def next_link(bundle: dict) -> str | None:
    """Return the URL of the Bundle's `next` link, if any."""
    for link in bundle.get("link") or []:
        if link.get("relation") == "next" and link.get("url"):
            return link["url"]
    return None


def bundle_resources(bundle: dict, resource_type: str) -> Iterator[dict]:
    """Yield the entry resources of `resource_type` in a search Bundle."""
    for entry in bundle.get("entry") or []:
        resource = entry.get("resource") or {}
        if resource.get("resourceType") == resource_type:
            yield resource
