import json

import requests

from .. import log
from ..config import DEFAULT_HTTP_TIMEOUT
from ..errors import ApiError
from ..utils import url_join

GERRIT_XSSI_PREFIX = ")]}'"


class RestClient:
    """
    Thin JSON client over a requests.Session.

    Paths are joined to base_url; absolute URLs (pagination links) are used as
    they are. Any non-2xx answer raises ApiError.
    """

    def __init__(self, base_url, headers=None, auth=None, timeout=DEFAULT_HTTP_TIMEOUT,
                 strip_prefix=None, session=None, page_size=100):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.strip_prefix = strip_prefix
        self.page_size = page_size
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)
        if auth:
            self.session.auth = auth

    def url(self, path):
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return url_join(self.base_url, path)

    def _decode(self, resp):
        text = resp.text or ""
        if self.strip_prefix and text.startswith(self.strip_prefix):
            text = text[len(self.strip_prefix):]
        if not text.strip():
            return None
        try:
            if self.strip_prefix:
                return json.loads(text)
            return resp.json()
        except ValueError:
            return text

    def send(self, method, path, params=None, json=None, data=None, headers=None):
        """Perform a request and return the raw response after checking its status."""
        url = self.url(path)
        log.debug(f"{method} {url}")
        try:
            resp = self.session.request(
                method, url, params=params, json=json, data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ApiError(0, url, str(e)) from e
        if resp.status_code < 200 or resp.status_code >= 300:
            raise ApiError(resp.status_code, url, resp.text)
        return resp

    def request(self, method, path, params=None, json=None, data=None, headers=None):
        return self._decode(self.send(method, path, params=params, json=json, data=data, headers=headers))

    def get(self, path, params=None):
        return self.request("GET", path, params=params)

    def post(self, path, json=None, params=None, data=None, headers=None):
        return self.request("POST", path, params=params, json=json, data=data, headers=headers)

    def put(self, path, json=None, params=None):
        return self.request("PUT", path, params=params, json=json)

    def patch(self, path, json=None, params=None):
        return self.request("PATCH", path, params=params, json=json)

    def delete(self, path, params=None):
        return self.request("DELETE", path, params=params)

    def get_all(self, path, params=None, items_key=None):
        """Follow rel="next" Link headers and return the items of every page."""
        params = dict(params or {})
        params.setdefault("per_page", self.page_size)
        results = []
        next_url = path
        while next_url:
            resp = self.send("GET", next_url, params=params)
            page = self._decode(resp)
            if items_key and isinstance(page, dict):
                page = page.get(items_key) or []
            results.extend(page or [])
            next_url = resp.links.get("next", {}).get("url")
            # the next link already carries the query string
            params = None
        return results
