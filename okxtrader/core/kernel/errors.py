# -*- coding: utf-8 -*-
# okxtrader/core/kernel/errors.py
"""
Error taxonomy shared by the driver and runtime layers.

Read-only paths catch these and degrade to an empty/previous result;
mutation paths let them reach the caller.
"""


class OkxTraderError(Exception):
    """Base class for everything raised by okxtrader."""


class AuthMissing(OkxTraderError):
    """Private call attempted without a complete credential set."""

    def __init__(self, msg="API Keys missing"):
        super().__init__(msg)


class NetworkError(OkxTraderError):
    """Transport failure: connection refused, DNS, timeout, TLS."""


class ApiError(OkxTraderError):
    """Non-2xx response, carrying the exchange {code, msg} envelope when present."""

    def __init__(self, code, msg, status=None):
        self.code = str(code)
        self.msg = msg
        self.status = status
        if status is not None:
            super().__init__(f"API Error {status}: {self.code}: {msg}")
        else:
            super().__init__(f"API Error {self.code}: {msg}")


class RateLimited(ApiError):
    """HTTP 429."""

    def __init__(self, msg="Too Many Requests"):
        super().__init__("429", msg, status=429)


class OrderRejected(OkxTraderError):
    """200 response whose per-item sCode is not '0'."""

    def __init__(self, msg, code=None):
        self.msg = msg or "Order rejected"
        self.code = code
        super().__init__(self.msg)


class MissingOrderId(OkxTraderError):
    """Cancel/amend called with neither ordId nor algoId."""

    def __init__(self, msg="ordId or algoId is required"):
        super().__init__(msg)


class ValidationError(OkxTraderError):
    """Caller-side input problem detected before anything is sent."""
