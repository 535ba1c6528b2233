# -*- coding: utf-8 -*-
# okxtrader/drivers/okx/normalize.py
"""
Raw OKX order payloads -> canonical Order list.

An algo record (orders-algo-pending) can bundle up to three price levels:
the primary trigger, an attached stop-loss and an attached take-profit. Each
non-trivial level becomes its own Order so the chart can draw and drag it
independently; all of them keep the parent algo_id for routing.
"""
import math
from typing import Iterable, List, Optional

from okxtrader.core.models import Order, OrderKind

LEG_SUFFIX = {
    OrderKind.STOP_LOSS: 'sl',
    OrderKind.TAKE_PROFIT: 'tp',
}


def _int(v, default=0):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _is_set(px) -> bool:
    # OKX 用 '' 或 '-1' 表示未设置
    return px not in (None, '', '-1')


def leg_id(algo_id: str, kind: OrderKind) -> str:
    if kind in LEG_SUFFIX:
        return f"{algo_id}-{LEG_SUFFIX[kind]}"
    return algo_id


def normalize_order(raw: dict) -> Order:
    """One orders-pending row."""
    return Order(
        ord_id=raw.get('ordId', ''),
        inst_id=raw.get('instId', ''),
        side=raw.get('side', ''),
        ord_type=raw.get('ordType', ''),
        px=raw.get('px', ''),
        sz=raw.get('sz', ''),
        state=raw.get('state', ''),
        c_time=_int(raw.get('cTime')),
    )


def decompose_algo(raw: dict) -> List[Order]:
    """
    Split one orders-algo-pending row into 0-3 legs.

    :return: [primary trigger leg?, sl leg?, tp leg?] in that order
    """
    algo_id = raw.get('algoId', '')
    common = dict(
        inst_id=raw.get('instId', ''),
        side=raw.get('side', ''),
        px=raw.get('ordPx') or '-1',
        sz=raw.get('sz', ''),
        state=raw.get('state', ''),
        c_time=_int(raw.get('cTime')),
        algo_id=algo_id,
    )
    legs = []
    if _is_set(raw.get('triggerPx')):
        legs.append(Order(
            ord_id=leg_id(algo_id, OrderKind.TRIGGER),
            ord_type=raw.get('ordType', ''),
            trigger_px=raw['triggerPx'],
            kind=OrderKind.TRIGGER,
            **common
        ))
    if _is_set(raw.get('slTriggerPx')):
        legs.append(Order(
            ord_id=leg_id(algo_id, OrderKind.STOP_LOSS),
            ord_type='sl',
            trigger_px=raw['slTriggerPx'],
            kind=OrderKind.STOP_LOSS,
            **common
        ))
    if _is_set(raw.get('tpTriggerPx')):
        legs.append(Order(
            ord_id=leg_id(algo_id, OrderKind.TAKE_PROFIT),
            ord_type='tp',
            trigger_px=raw['tpTriggerPx'],
            kind=OrderKind.TAKE_PROFIT,
            **common
        ))
    return legs


def decompose_algos(rows: Iterable[dict]) -> List[Order]:
    out = []
    for raw in rows or []:
        out.extend(decompose_algo(raw))
    return out


def sort_newest_first(orders: Iterable[Order]) -> List[Order]:
    return sorted(orders, key=lambda o: o.c_time, reverse=True)


def reconcile(orders: Iterable[Order], inst_id: str, exclude_ord_id: Optional[str] = None) -> List[Order]:
    """
    Orders that belong on the chart of `inst_id` right now: same instrument,
    a drawable anchor price, and not the one currently being dragged.
    """
    out = []
    for o in orders:
        if o.inst_id != inst_id:
            continue
        if exclude_ord_id is not None and o.ord_id == exclude_ord_id:
            continue
        price = o.anchor_price
        if math.isnan(price) or price <= 0:
            continue
        out.append(o)
    return out
