# -*- coding: utf-8 -*-
# tests/conftest.py
# 共享 fixtures：假 HTTP session、假图表、临时 store、可控时钟

import json
import sys
from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

import pytest
import requests

# Ensure project root (which contains the `okxtrader/` package directory) is on sys.path
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from okxtrader.core.models import Credentials
from okxtrader.drivers.okx.okex import OkxGateway
from okxtrader.utils.store import LocalStore

TS = '2020-12-08T09:08:57.715Z'
CREDS = Credentials(api_key='key', secret_key='secret', passphrase='pass')


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None, reason='OK'):
        self.status_code = status_code
        self.reason = reason
        if text is None:
            text = json.dumps(body) if body is not None else ''
        self.text = text

    def json(self):
        return json.loads(self.text)


def ok(data):
    return FakeResponse(200, {'code': '0', 'msg': '', 'data': data})


class FakeSession:
    """
    Records every request and replays canned responses.

    routes: {(METHOD, path): response | exception | callable(call) | [responses...]}
    A list is consumed in order; its last element repeats.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, method, path, response):
        self.routes[(method.upper(), path)] = response
        return self

    def request(self, method, url, data=None, headers=None, timeout=None):
        parts = urlsplit(url)
        call = {
            'method': method,
            'url': url,
            'path': parts.path,
            'query': parts.query,
            'params': dict(parse_qsl(parts.query)),
            'data': data,
            'body': json.loads(data) if data else None,
            'headers': dict(headers or {}),
            'timeout': timeout,
        }
        self.calls.append(call)
        response = self.routes.get((method.upper(), parts.path))
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if callable(response) and not isinstance(response, FakeResponse):
            response = response(call)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return FakeResponse(404, {'code': '404', 'msg': f'no route {method} {parts.path}'}, reason='Not Found')
        return response

    def paths(self, method=None):
        return [c['path'] for c in self.calls if method is None or c['method'] == method]


class FakeChart:
    """
    Linear price axis: y = (top - price) * px_per_unit, visible for 0 <= y <= height.
    Candles are kept oldest first like the real series.
    """

    def __init__(self, top=200.0, px_per_unit=10.0, height=2000.0):
        self.top = top
        self.px_per_unit = px_per_unit
        self.height = height
        self.candles = []
        self.fit_calls = 0
        self.updates = []

    def price_to_coordinate(self, price):
        y = (self.top - float(price)) * self.px_per_unit
        if y < 0 or y > self.height:
            return None
        return y

    def coordinate_to_price(self, y):
        if y is None or y < 0 or y > self.height:
            return None
        return self.top - float(y) / self.px_per_unit

    def data(self):
        return list(self.candles)

    def set_data(self, candles):
        self.candles = list(candles)

    def update(self, candle):
        self.updates.append(candle)
        if self.candles and self.candles[-1].time == candle.time:
            self.candles[-1] = candle
        else:
            self.candles.append(candle)

    def fit_content(self):
        self.fit_calls += 1


class Clock:
    def __init__(self, now_ms=1_700_000_000_000):
        self.now = now_ms

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def gateway(session):
    return OkxGateway(CREDS, session=session, clock=lambda: TS)


@pytest.fixture
def anon_gateway(session):
    return OkxGateway(Credentials(), session=session, clock=lambda: TS)


@pytest.fixture
def store(tmp_path):
    return LocalStore(home=tmp_path)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def chart():
    return FakeChart()


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError('connection refused')
