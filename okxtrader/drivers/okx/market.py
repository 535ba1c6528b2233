# -*- coding: utf-8 -*-
# okxtrader/drivers/okx/market.py
# Read-only market endpoints. Nothing here raises to the caller except ticker().
import logging
import threading
from typing import List, Optional

from okxtrader.core.models import Candle, Instrument, RatesSnapshot, Ticker, to_float
from okxtrader.drivers.okx.okex import OkxGateway, data_of

log = logging.getLogger(__name__)

# 兜底：接口失败时返回少量默认交易对，首屏不至于空白
FALLBACK_INSTRUMENTS = (
    Instrument('BTC-USDT', 'BTC', 'USDT', 'SPOT'),
    Instrument('ETH-USDT', 'ETH', 'USDT', 'SPOT'),
    Instrument('SOL-USDT', 'SOL', 'USDT', 'SPOT'),
    Instrument('BTC-USDT-SWAP', 'BTC', 'USDT', 'SWAP', lever='100', ct_val='0.01'),
    Instrument('ETH-USDT-SWAP', 'ETH', 'USDT', 'SWAP', lever='100', ct_val='0.1'),
    Instrument('SOL-USDT-SWAP', 'SOL', 'USDT', 'SWAP', lever='50', ct_val='1'),
)

CANDLE_LIMIT = 100


class RatesCell:
    """Single-writer cell holding the latest USD conversion rates."""

    def __init__(self, initial: RatesSnapshot = None):
        self._lock = threading.Lock()
        self._value = initial or RatesSnapshot()

    def get(self) -> RatesSnapshot:
        with self._lock:
            return self._value

    def update(self, **changes) -> RatesSnapshot:
        with self._lock:
            current = self._value.as_dict()
            current.update({k.upper(): v for k, v in changes.items()})
            self._value = RatesSnapshot(usd=current['USD'], cny=current['CNY'], btc=current['BTC'])
            return self._value

    def convert(self, usd_amount: float, unit: str = 'USD') -> float:
        rate = self.get().as_dict().get(unit.upper())
        if rate is None:
            raise KeyError(unit)
        return usd_amount * rate


class MarketClient:
    def __init__(self, gateway: OkxGateway, rates: RatesCell = None):
        self.gateway = gateway
        self.rates = rates or RatesCell()

    def exchange_rates(self) -> dict:
        """
        Refresh USD->CNY and USD->BTC. Each lookup that fails leaves the cached
        value untouched; the current snapshot is always returned.
        """
        try:
            rows = data_of(self.gateway.get('/api/v5/market/exchange-rate'))
            usd_cny = to_float(rows[0].get('usdCny')) if rows else 0.0
            if usd_cny > 0:
                self.rates.update(cny=usd_cny)
        except Exception as e:
            log.warning("Failed to fetch USD/CNY rate: %s", e)
        try:
            rows = data_of(self.gateway.get('/api/v5/market/ticker', params={'instId': 'BTC-USDT'}))
            btc_last = to_float(rows[0].get('last')) if rows else 0.0
            if btc_last > 0:
                self.rates.update(btc=1 / btc_last)
        except Exception as e:
            log.warning("Failed to fetch BTC reference price: %s", e)
        return self.rates.get().as_dict()

    def instruments(self, inst_type='SPOT') -> List[Instrument]:
        inst_type = str(inst_type).upper()
        try:
            rows = data_of(self.gateway.get('/api/v5/public/instruments', params={'instType': inst_type}))
        except Exception as e:
            log.warning("instruments(%s) failed, using fallback set: %s", inst_type, e)
            rows = []
        if not rows:
            return [i for i in FALLBACK_INSTRUMENTS if i.inst_type == inst_type]
        return [
            Instrument(
                inst_id=d.get('instId', ''),
                base_ccy=d.get('baseCcy', ''),
                quote_ccy=d.get('quoteCcy', ''),
                inst_type=d.get('instType', inst_type),
                lever=d.get('lever') or None,
                ct_val=d.get('ctVal') or None,
            )
            for d in rows
        ]

    def tickers(self, inst_type='SPOT') -> List[Ticker]:
        try:
            rows = data_of(self.gateway.get('/api/v5/market/tickers', params={'instType': str(inst_type).upper()}))
        except Exception as e:
            log.warning("tickers(%s) failed: %s", inst_type, e)
            return []
        return [self._ticker(d) for d in rows]

    def ticker(self, inst_id) -> Ticker:
        rows = data_of(self.gateway.get('/api/v5/market/ticker', params={'instId': inst_id}))
        if not rows:
            raise LookupError(f"No ticker data for {inst_id}")
        return self._ticker(rows[0])

    def candles(self, inst_id, bar='1D', after: Optional[int] = None, limit=CANDLE_LIMIT,
                raise_errors=False) -> List[Candle]:
        """
        History candles, oldest first.

        :param after: unix seconds; only candles strictly older are returned.
                      OKX expects milliseconds, hence the x1000.
        :param raise_errors: propagate request failures instead of returning [],
                             so an empty result always means "no such candles"
        """
        params = {'instId': inst_id, 'bar': bar, 'limit': limit}
        if after:
            params['after'] = int(after) * 1000
        try:
            rows = data_of(self.gateway.get('/api/v5/market/history-candles', params=params))
        except Exception as e:
            if raise_errors:
                raise
            log.warning("candles(%s, %s) failed: %s", inst_id, bar, e)
            return []
        out = []
        for c in rows:
            try:
                out.append(Candle(
                    time=int(c[0]) // 1000,
                    open=float(c[1]),
                    high=float(c[2]),
                    low=float(c[3]),
                    close=float(c[4]),
                ))
            except (IndexError, TypeError, ValueError):
                log.debug("skip malformed candle row %r", c)
        # OKX 返回新→旧，图表需要旧→新
        out.reverse()
        if after:
            out = [c for c in out if c.time < int(after)]
        return out

    @staticmethod
    def _ticker(d) -> Ticker:
        return Ticker(
            inst_id=d.get('instId', ''),
            last=d.get('last', ''),
            open24h=d.get('open24h', ''),
            ask_px=d.get('askPx', ''),
            bid_px=d.get('bidPx', ''),
            vol_ccy24h=d.get('volCcy24h', ''),
            vol24h=d.get('vol24h') or d.get('volCcy24h', ''),
            ts=d.get('ts', ''),
            sod_utc0=d.get('sodUtc0', ''),
        )
