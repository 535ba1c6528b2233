# -*- coding: utf-8 -*-
# okxtrader/core/models.py
"""
Data model shared by the driver and runtime layers.

Exchange-originated numbers (prices, sizes) stay as the decimal strings OKX
sends, so they can be echoed back in amend/cancel bodies without float
round-off. Float views are exposed as properties where the runtime needs math.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from okxtrader.core.kernel.errors import ValidationError


def to_float(value, default=0.0):
    """float() that tolerates None, '' and garbage."""
    try:
        if value is None or value == '':
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Credentials:
    api_key: str = ''
    secret_key: str = ''
    passphrase: str = ''

    @property
    def has_keys(self) -> bool:
        return bool(self.api_key and self.secret_key and self.passphrase)


@dataclass(frozen=True)
class Instrument:
    inst_id: str                    # e.g. BTC-USDT-SWAP
    base_ccy: str
    quote_ccy: str
    inst_type: str                  # SPOT | SWAP
    lever: Optional[str] = None     # max leverage
    ct_val: Optional[str] = None    # contract value

    @property
    def contract_value(self) -> float:
        return to_float(self.ct_val, 1.0) or 1.0


@dataclass(frozen=True)
class Ticker:
    inst_id: str
    last: str
    open24h: str = ''
    ask_px: str = ''
    bid_px: str = ''
    vol_ccy24h: str = ''            # volume in coin
    vol24h: str = ''                # volume, falls back to vol_ccy24h
    ts: str = ''
    sod_utc0: str = ''


@dataclass(frozen=True)
class Candle:
    time: int                       # unix seconds, candle open
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class Position:
    inst_id: str
    pos_side: str                   # long | short | net
    pos: str                        # size, signed for net mode
    avg_px: str
    upl: str = '0'
    upl_ratio: str = '0'
    mgn_mode: str = 'cross'         # cross | isolated
    ccy: str = ''                   # margin currency
    lever: Optional[str] = None
    ct_val: Optional[str] = None

    @property
    def size(self) -> float:
        return to_float(self.pos)

    @property
    def entry_price(self) -> float:
        return to_float(self.avg_px)

    @property
    def contract_value(self) -> float:
        return to_float(self.ct_val, 1.0) or 1.0

    @property
    def is_short(self) -> bool:
        return self.pos_side == 'short' or (self.pos_side == 'net' and self.size < 0)

    @property
    def close_side(self) -> str:
        """Side of the order that reduces this position."""
        return 'buy' if self.is_short else 'sell'


class OrderKind(Enum):
    """Which logical leg of an exchange record an Order represents."""
    STANDARD = 'standard'           # plain order from orders-pending
    TRIGGER = 'trigger'             # primary leg of an algo record
    STOP_LOSS = 'sl'
    TAKE_PROFIT = 'tp'


@dataclass(frozen=True)
class Order:
    ord_id: str                     # unique per leg: <algoId>, <algoId>-sl, <algoId>-tp
    inst_id: str
    side: str                       # buy | sell
    ord_type: str                   # limit, market, conditional, sl, tp, oco, trigger ...
    px: str
    sz: str
    state: str
    c_time: int                     # ms
    trigger_px: Optional[str] = None
    algo_id: Optional[str] = None
    kind: OrderKind = OrderKind.STANDARD

    @property
    def is_algo(self) -> bool:
        return self.algo_id is not None

    @property
    def anchor_price(self) -> float:
        """Trigger price when set and positive, otherwise the order price."""
        trigger = to_float(self.trigger_px)
        if trigger > 0:
            return trigger
        return to_float(self.px, float('nan'))


@dataclass(frozen=True)
class AssetBalance:
    ccy: str
    avail_bal: str
    frozen_bal: str
    eq_usd: str


@dataclass(frozen=True)
class AssetHistoryPoint:
    ts: int                         # ms
    total_eq: float

    def to_dict(self) -> Dict[str, Any]:
        # 与远端同步的格式保持一致: ts 为字符串毫秒
        return {'ts': str(self.ts), 'totalEq': self.total_eq}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'AssetHistoryPoint':
        return cls(ts=int(d['ts']), total_eq=float(d['totalEq']))


@dataclass(frozen=True)
class AssetAlert:
    ccy: str
    min: str = ''
    max: str = ''
    enabled: bool = True


@dataclass(frozen=True)
class TradeHistoryItem:
    fill_id: str
    inst_id: str
    side: str
    fill_px: str
    fill_sz: str
    fee: str
    ts: int
    pnl: str


@dataclass
class OrderRequest:
    inst_id: str
    td_mode: str                            # cash | cross | isolated
    side: str                               # buy | sell
    ord_type: str                           # limit | market | conditional
    sz: str
    px: Optional[str] = None
    pos_side: Optional[str] = None          # only in long/short account mode
    trigger_px: Optional[str] = None        # conditional only
    algo_kind: str = 'sl'                   # conditional only: sl | tp

    def validate(self):
        if not self.sz:
            raise ValidationError('Please enter an amount')
        if self.ord_type == 'limit' and not self.px:
            raise ValidationError('Limit order requires a price')
        if self.ord_type == 'conditional':
            if not self.trigger_px:
                raise ValidationError('Conditional order requires a trigger price')
            if self.algo_kind not in ('sl', 'tp'):
                raise ValidationError(f'Unknown algo kind {self.algo_kind!r}')


@dataclass
class AmendOrderRequest:
    """Sparse patch: only fields that are not None are sent."""
    inst_id: str
    ord_id: Optional[str] = None
    algo_id: Optional[str] = None
    new_sz: Optional[str] = None
    new_px: Optional[str] = None
    new_tp_trigger_px: Optional[str] = None
    new_tp_ord_px: Optional[str] = None
    new_sl_trigger_px: Optional[str] = None
    new_sl_ord_px: Optional[str] = None
    new_trigger_px: Optional[str] = None

    _WIRE_NAMES = (
        ('new_sz', 'newSz'),
        ('new_px', 'newPx'),
        ('new_tp_trigger_px', 'newTpTriggerPx'),
        ('new_tp_ord_px', 'newTpOrdPx'),
        ('new_sl_trigger_px', 'newSlTriggerPx'),
        ('new_sl_ord_px', 'newSlOrdPx'),
        ('new_trigger_px', 'newTriggerPx'),
    )

    def changes(self, allowed: Tuple[str, ...] = None) -> Dict[str, str]:
        out = {}
        for attr, wire in self._WIRE_NAMES:
            if allowed is not None and wire not in allowed:
                continue
            value = getattr(self, attr)
            if value is not None and value != '':
                out[wire] = value
        return out


@dataclass(frozen=True)
class RatesSnapshot:
    usd: float = 1.0
    cny: float = 7.2
    btc: float = 0.000015

    def as_dict(self) -> Dict[str, float]:
        return {'USD': self.usd, 'CNY': self.cny, 'BTC': self.btc}


@dataclass
class TradeSnapshot:
    """Most recent completed poll of the trade view, per endpoint."""
    inst_id: str
    ticker: Optional[Ticker] = None
    orders: list = field(default_factory=list)
    positions: list = field(default_factory=list)
    instrument: Optional[Instrument] = None
    balances: list = field(default_factory=list)

    @property
    def position(self) -> Optional[Position]:
        for p in self.positions:
            if p.inst_id == self.inst_id:
                return p
        return None
