# -*- coding: utf-8 -*-
# okxtrader/drivers/okx/account.py
# Account / trading endpoints.
#   read paths  (balances, positions, orders, history): never raise, degrade to []
#   write paths (place, cancel, amend, set-leverage):   raise to the caller
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from okxtrader.core.kernel.errors import ApiError, AuthMissing, MissingOrderId, OrderRejected, ValidationError
from okxtrader.core.models import (
    AmendOrderRequest, AssetBalance, Order, OrderRequest, Position, TradeHistoryItem,
)
from okxtrader.drivers.okx.market import MarketClient
from okxtrader.drivers.okx.normalize import decompose_algos, normalize_order, sort_newest_first
from okxtrader.drivers.okx.okex import OkxGateway, data_of
from okxtrader.drivers.okx.util import inst_type_of

log = logging.getLogger(__name__)

ALGO_ORD_TYPES = ('conditional', 'oco', 'trigger')
ALGO_AMEND_FIELDS = ('newSz', 'newTpTriggerPx', 'newTpOrdPx', 'newSlTriggerPx', 'newSlOrdPx', 'newTriggerPx')
ORDER_AMEND_FIELDS = ('newSz', 'newPx')


def _int(v, default=0):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _check_items(result, fallback_msg):
    """
    Per-item status check for order mutations.
    Raises OrderRejected on the first sCode != '0'; returns the data rows.
    """
    rows = data_of(result)
    for item in rows:
        s_code = str(item.get('sCode', '0'))
        if s_code != '0':
            raise OrderRejected(item.get('sMsg') or fallback_msg, code=s_code)
    if not rows and isinstance(result, dict) and str(result.get('code', '0')) != '0':
        raise ApiError(result.get('code'), result.get('msg') or fallback_msg)
    return rows


class AccountClient:
    def __init__(self, gateway: OkxGateway, market: MarketClient = None, recorder=None):
        """
        :param gateway: signed REST gateway
        :param market: used to join ctVal onto positions
        :param recorder: optional AssetHistoryRecorder fed by every balances() call
        """
        self.gateway = gateway
        self.market = market or MarketClient(gateway)
        self.recorder = recorder

    @property
    def has_keys(self) -> bool:
        return self.gateway.has_keys

    # -------------- read paths --------------
    def balances(self) -> List[AssetBalance]:
        if not self.has_keys:
            return []
        balances = []
        try:
            rows = data_of(self.gateway.get('/api/v5/account/balance'))
            if rows:
                balances = [
                    AssetBalance(
                        ccy=d.get('ccy', ''),
                        avail_bal=d.get('availBal', ''),
                        frozen_bal=d.get('frozenBal', ''),
                        eq_usd=d.get('eqUsd', ''),
                    )
                    for d in rows[0].get('details') or []
                ]
        except Exception as e:
            log.warning("balances() failed: %s", e)
        if self.recorder is not None:
            try:
                self.recorder.record(balances)
            except Exception as e:
                log.warning("asset history record failed: %s", e)
        return balances

    def positions(self) -> List[Position]:
        if not self.has_keys:
            return []
        try:
            with ThreadPoolExecutor(max_workers=2) as pool:
                pos_future = pool.submit(self.gateway.get, '/api/v5/account/positions')
                inst_future = pool.submit(self.market.instruments, 'SWAP')
                rows = data_of(pos_future.result())
                instruments = inst_future.result()
        except Exception as e:
            log.warning("positions() failed: %s", e)
            return []
        ct_vals = {i.inst_id: i.ct_val for i in instruments}
        return [
            Position(
                inst_id=d.get('instId', ''),
                pos_side=d.get('posSide', 'net'),
                pos=d.get('pos', '0'),
                avg_px=d.get('avgPx', ''),
                upl=d.get('upl', '0'),
                upl_ratio=d.get('uplRatio', '0'),
                mgn_mode=d.get('mgnMode', 'cross'),
                ccy=d.get('ccy', ''),
                lever=d.get('lever') or None,
                ct_val=ct_vals.get(d.get('instId')) or '1',
            )
            for d in rows
        ]

    def positions_history(self, inst_type='SWAP', limit=100) -> list:
        """Closed positions, newest first (raw rows: realizedPnl, uTime, ...)."""
        if not self.has_keys:
            return []
        try:
            rows = data_of(self.gateway.get('/api/v5/account/positions-history',
                                            params={'instType': inst_type, 'limit': limit}))
        except Exception as e:
            log.warning("positions_history() failed: %s", e)
            return []
        return sorted(rows, key=lambda r: _int(r.get('uTime')), reverse=True)

    def trade_history(self, inst_type='SPOT', limit=50) -> List[TradeHistoryItem]:
        if not self.has_keys:
            return []
        try:
            rows = data_of(self.gateway.get('/api/v5/trade/fills-history',
                                            params={'instType': inst_type, 'limit': limit}))
        except Exception as e:
            log.warning("trade_history() failed: %s", e)
            return []
        items = [
            TradeHistoryItem(
                fill_id=r.get('fillId', '') or r.get('tradeId', ''),
                inst_id=r.get('instId', ''),
                side=r.get('side', ''),
                fill_px=r.get('fillPx', ''),
                fill_sz=r.get('fillSz', ''),
                fee=r.get('fee', '0'),
                ts=_int(r.get('ts')),
                pnl=r.get('fillPnl') or r.get('pnl') or '0',
            )
            for r in rows
        ]
        return sorted(items, key=lambda t: t.ts, reverse=True)

    def _pending(self, params) -> List[Order]:
        try:
            rows = data_of(self.gateway.get('/api/v5/trade/orders-pending', params=params))
        except Exception as e:
            log.warning("orders-pending %s failed: %s", params, e)
            return []
        return [normalize_order(r) for r in rows]

    def _algo_pending(self, params) -> List[Order]:
        try:
            rows = data_of(self.gateway.get('/api/v5/trade/orders-algo-pending', params=params))
        except Exception as e:
            log.warning("orders-algo-pending %s failed: %s", params, e)
            return []
        return decompose_algos(rows)

    def open_orders(self, inst_id: Optional[str] = None) -> List[Order]:
        """
        Standard + algo pending orders, algo rows split into legs, newest first.
        Each of the sub-calls fails on its own without sinking the others.
        """
        if not self.has_keys:
            return []
        types = [inst_type_of(inst_id)] if inst_id else ['SPOT', 'SWAP']
        orders = []
        for inst_type in types:
            params = {'instType': inst_type}
            if inst_id:
                params['instId'] = inst_id
            orders.extend(self._pending(params))
            for ord_type in ALGO_ORD_TYPES:
                orders.extend(self._algo_pending(dict(params, ordType=ord_type)))
        return sort_newest_first(orders)

    # -------------- write paths --------------
    def _require_keys(self):
        if not self.has_keys:
            raise AuthMissing("Please configure API Keys")

    def place_order(self, req: OrderRequest) -> str:
        """
        :return: ordId, or algoId for conditional orders
        """
        self._require_keys()
        req.validate()
        payload = {
            'instId': req.inst_id,
            'tdMode': req.td_mode,
            'side': req.side,
            'sz': req.sz,
        }
        if req.pos_side:
            payload['posSide'] = req.pos_side
        if req.ord_type == 'conditional':
            endpoint = '/api/v5/trade/order-algo'
            payload['ordType'] = 'conditional'
            payload[f'{req.algo_kind}TriggerPx'] = req.trigger_px
            payload[f'{req.algo_kind}OrdPx'] = req.px if req.px else '-1'
        else:
            endpoint = '/api/v5/trade/order'
            payload['ordType'] = req.ord_type
            if req.ord_type != 'market' and req.px:
                payload['px'] = req.px

        rows = _check_items(self.gateway.post(endpoint, payload), "Order placement failed")
        if not rows:
            raise OrderRejected("Order failed")
        order_id = rows[0].get('ordId') or rows[0].get('algoId')
        log.info("placed %s %s %s sz=%s -> %s", req.ord_type, req.side, req.inst_id, req.sz, order_id)
        return order_id

    def cancel_order(self, inst_id, ord_id=None, algo_id=None):
        self._require_keys()
        if algo_id:
            result = self.gateway.post('/api/v5/trade/cancel-algos', [{'instId': inst_id, 'algoId': algo_id}])
        elif ord_id:
            result = self.gateway.post('/api/v5/trade/cancel-order', {'instId': inst_id, 'ordId': ord_id})
        else:
            raise MissingOrderId()
        _check_items(result, "Cancel failed")
        log.info("cancelled %s %s", inst_id, algo_id or ord_id)

    def amend_order(self, req: AmendOrderRequest):
        """Sparse patch: only the new* fields that were provided are forwarded."""
        self._require_keys()
        if req.algo_id:
            changes = req.changes(ALGO_AMEND_FIELDS)
            if not changes:
                raise ValidationError("Nothing to amend")
            body = dict({'instId': req.inst_id, 'algoId': req.algo_id}, **changes)
            result = self.gateway.post('/api/v5/trade/amend-algos', [body])
        elif req.ord_id:
            changes = req.changes(ORDER_AMEND_FIELDS)
            if not changes:
                raise ValidationError("Nothing to amend")
            body = dict({'instId': req.inst_id, 'ordId': req.ord_id}, **changes)
            result = self.gateway.post('/api/v5/trade/amend-order', body)
        else:
            raise MissingOrderId()
        _check_items(result, "Amend failed")
        log.info("amended %s %s %s", req.inst_id, req.algo_id or req.ord_id, changes)

    def set_leverage(self, inst_id, lever, mgn_mode='cross'):
        self._require_keys()
        return self.gateway.post('/api/v5/account/set-leverage',
                                 {'instId': inst_id, 'lever': str(lever), 'mgnMode': mgn_mode})
