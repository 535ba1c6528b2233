"""
Request signer for OKX v5.

OK-ACCESS-SIGN = base64(HMAC_SHA256(secret, timestamp + METHOD + requestPath + body))
"""
import base64
import hmac
from datetime import datetime, timezone


def iso_timestamp(now: datetime = None) -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2020-12-08T09:08:57.715Z"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class Signer:
    def __init__(self, secret_key):
        self.secret_key = secret_key or ''

    def sign(self, timestamp, method, request_path, body=''):
        """
        :param timestamp: the exact string sent in OK-ACCESS-TIMESTAMP
        :param method: GET / POST, upper-cased before signing
        :param request_path: path including the query string, e.g. /api/v5/account/balance?ccy=BTC
        :param body: serialized JSON body exactly as sent, '' for GET
        :return: base64 tag, or '' when no secret is configured (caller must not send it)
        """
        if not self.secret_key:
            return ''
        message = str(timestamp) + str.upper(method) + request_path + (body or '')
        mac = hmac.new(
            bytes(self.secret_key, encoding="utf8"),
            bytes(message, encoding="utf-8"),
            digestmod="sha256",
        )
        return base64.b64encode(mac.digest()).decode()
