# -*- coding: utf-8 -*-
# okxtrader/drivers/okx/okex.py
# Low-level OKX v5 REST gateway: signing headers, transport, response classification.
import json
import logging
from urllib.parse import urlencode, urljoin

import requests

from okxtrader.core.kernel.errors import ApiError, AuthMissing, NetworkError, RateLimited
from okxtrader.core.models import Credentials
from okxtrader.drivers.okx.signer import Signer, iso_timestamp

BASE_URL = "https://www.okx.com"

log = logging.getLogger(__name__)


def data_of(result):
    """The `data` list of an OKX envelope, [] when absent."""
    if isinstance(result, dict):
        data = result.get('data')
        if isinstance(data, list):
            return data
    return []


class OkxGateway:
    """
    OKX REST gateway.

    Every call is a single attempt; retries and error absorption are the
    caller's decision. Headers are attached whenever the full credential set is
    present, public paths included (higher rate-limit tier).
    """

    def __init__(self, credentials: Credentials, host=None, session=None, timeout=10.0, clock=None):
        self._host = host or BASE_URL
        self.credentials = credentials or Credentials()
        self._signer = Signer(self.credentials.secret_key)
        self._session = session or requests.Session()
        self._timeout = float(timeout)
        self._clock = clock or iso_timestamp

    @property
    def has_keys(self) -> bool:
        return self.credentials.has_keys

    @staticmethod
    def is_public(uri) -> bool:
        return '/public/' in uri or '/market/' in uri

    def request(self, method, uri, params=None, body=None):
        """Initiate network request
       @param method: request method, GET / POST
       @param uri: request path, may already carry a query string
       @param params: dict, appended to the query string in insertion order
       @param body: dict or list, JSON body for POST
       @return: parsed JSON envelope
       """
        method = method.upper()
        # 按不带查询串的路径判断公共接口
        public = self.is_public(uri.split('?', 1)[0])
        if params:
            query = urlencode([(k, v) for k, v in params.items() if v is not None])
            if query:
                uri += ('&' if '?' in uri else '?') + query

        has_auth = self.has_keys
        if not public and not has_auth:
            raise AuthMissing()

        body_str = json.dumps(body) if body is not None else ''
        headers = {"Content-Type": "application/json"}
        if has_auth:
            timestamp = self._clock()
            headers["OK-ACCESS-KEY"] = self.credentials.api_key
            headers["OK-ACCESS-SIGN"] = self._signer.sign(timestamp, method, uri, body_str)
            headers["OK-ACCESS-TIMESTAMP"] = timestamp
            headers["OK-ACCESS-PASSPHRASE"] = self.credentials.passphrase

        url = urljoin(self._host, uri)
        log.debug("%s %s", method, uri)
        try:
            r = self._session.request(method, url, data=body_str or None, headers=headers, timeout=self._timeout)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Network Error: connection failed ({method} {uri}): {e}") from e

        if r.status_code == 429:
            log.warning("OKX 429 rate limit (%s %s)", method, uri)
            raise RateLimited(r.reason or "Too Many Requests")

        if r.status_code < 200 or r.status_code >= 300:
            try:
                payload = r.json()
            except ValueError:
                payload = None
            log.warning("OKX HTTP %d (%s %s)", r.status_code, method, uri)
            if isinstance(payload, dict) and payload.get('msg'):
                raise ApiError(payload.get('code', r.status_code), payload['msg'], status=r.status_code)
            raise ApiError(r.status_code, r.reason or 'HTTP error', status=r.status_code)

        if not r.text:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise ApiError(r.status_code, 'Invalid JSON response', status=r.status_code) from e

    def get(self, uri, params=None):
        return self.request("GET", uri, params=params)

    def post(self, uri, body=None):
        return self.request("POST", uri, body=body)
