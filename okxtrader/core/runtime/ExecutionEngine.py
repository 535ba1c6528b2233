#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ExecutionEngine - 下单 / 改单 / 撤单入口
- submit(): 下单表单（现货 buy/sell，合约 long/short）
- handle_intent(): 图表拖拽产生的改单 / 新建止盈止损
- 所有变更类调用的异常原样抛给调用方，由界面提示
"""

import logging
import math
from typing import Optional

from okxtrader.core.kernel.errors import ValidationError
from okxtrader.core.kernel.event_bus import INTENT, EventBus
from okxtrader.core.models import AmendOrderRequest, Instrument, Order, OrderKind, OrderRequest, to_float
from okxtrader.core.runtime.ChartOverlay import CreateAlgoIntent, ModifyOrderIntent
from okxtrader.drivers.okx.util import inst_type_of

log = logging.getLogger(__name__)

SPOT_ACTIONS = {'buy': 'buy', 'sell': 'sell'}
SWAP_ACTIONS = {'long': ('buy', 'long'), 'short': ('sell', 'short')}


def size_for_percentage(avail, price, pct, instrument: Instrument = None, leverage=1) -> str:
    """
    下单数量滑块
    - 合约: 整数张 = floor(可用 * 杠杆 / (价格 * 面值) * pct%)
    - 现货: 可用 / 价格 * pct%，保留 5 位
    """
    p = to_float(price)
    if p <= 0:
        return ''
    avail = to_float(avail)
    if instrument is not None and instrument.inst_type == 'SWAP':
        max_contracts = avail * float(leverage) / (p * instrument.contract_value)
        return str(int(math.floor(max_contracts * pct / 100.0)))
    return f"{avail / p * pct / 100.0:.5f}"


def estimated_cost(price, size, instrument: Instrument = None, leverage=1) -> Optional[float]:
    """合约为保证金占用，现货为计价币金额"""
    p, s = to_float(price), to_float(size)
    if not p or not s:
        return None
    if instrument is not None and instrument.inst_type == 'SWAP':
        return p * s * instrument.contract_value / float(leverage)
    return p * s


def amend_request_for(order: Order, new_px: str) -> AmendOrderRequest:
    """Pick the amend field from the leg kind; algo legs address the parent algo."""
    if order.is_algo:
        req = AmendOrderRequest(inst_id=order.inst_id, algo_id=order.algo_id)
    else:
        req = AmendOrderRequest(inst_id=order.inst_id, ord_id=order.ord_id)

    if order.kind is OrderKind.STOP_LOSS or order.ord_type == 'sl':
        req.new_sl_trigger_px = new_px
    elif order.kind is OrderKind.TAKE_PROFIT or order.ord_type == 'tp':
        req.new_tp_trigger_px = new_px
    elif order.ord_type in ('conditional', 'trigger'):
        req.new_trigger_px = new_px
    elif order.ord_type == 'limit':
        req.new_px = new_px
    elif order.trigger_px:
        req.new_trigger_px = new_px
    else:
        req.new_px = new_px
    return req


class ExecutionEngine:
    def __init__(self, get_driver, monitor=None, bus: EventBus = None):
        """
        :param get_driver: returns the current OkxDriver
        :param monitor: SystemMonitor, receives an operation record per successful mutation
        :param bus: when given, INTENT events are submitted automatically
        """
        self.get_driver = get_driver
        self.monitor = monitor
        self.logger = log
        self.bus = bus
        if bus is not None:
            bus.subscribe(INTENT, self._on_intent)

    @property
    def account(self):
        return self.get_driver().account

    def _record(self, op, details):
        if self.monitor is not None:
            self.monitor.record_operation(op, details)

    # ---------- order form ----------
    def submit(self, action, inst_id, ord_type, sz, px=None, trigger_px=None,
               margin_mode='cross', leverage=None, algo_kind='sl') -> str:
        """
        Args:
            action: buy / sell on spot, long / short on swaps
            ord_type: limit / market / conditional
            leverage: swaps only; set before the order, a failure there is ignored

        Returns:
            str: ordId or algoId
        """
        is_swap = inst_type_of(inst_id) == 'SWAP'
        if is_swap:
            if action not in SWAP_ACTIONS:
                raise ValidationError(f"Unknown action {action!r} for {inst_id}")
            side, pos_side = SWAP_ACTIONS[action]
            td_mode = margin_mode
            if leverage:
                try:
                    self.account.set_leverage(inst_id, leverage, margin_mode)
                except Exception as e:
                    self.logger.warning("set_leverage %s x%s failed, continuing: %s", inst_id, leverage, e)
        else:
            if action not in SPOT_ACTIONS:
                raise ValidationError(f"Unknown action {action!r} for {inst_id}")
            side, pos_side, td_mode = SPOT_ACTIONS[action], None, 'cash'

        req = OrderRequest(
            inst_id=inst_id,
            td_mode=td_mode,
            side=side,
            ord_type=ord_type,
            sz=sz,
            px=px if ord_type != 'market' else None,
            pos_side=pos_side,
            trigger_px=trigger_px if ord_type == 'conditional' else None,
            algo_kind=algo_kind,
        )
        order_id = self.account.place_order(req)
        self._record('place', {'instId': inst_id, 'side': side, 'ordType': ord_type, 'sz': sz, 'id': order_id})
        return order_id

    def cancel(self, order: Order):
        """An sl/tp leg cancels its whole parent algo record."""
        self.account.cancel_order(order.inst_id, ord_id=None if order.is_algo else order.ord_id,
                                  algo_id=order.algo_id)
        self._record('cancel', {'instId': order.inst_id, 'id': order.algo_id or order.ord_id})

    def modify(self, order: Order, new_px: str):
        if not new_px:
            raise ValidationError("Invalid price")
        req = amend_request_for(order, new_px)
        self.account.amend_order(req)
        self._record('amend', {'instId': order.inst_id, 'id': order.algo_id or order.ord_id, 'px': new_px})

    def add_algo(self, intent: CreateAlgoIntent) -> str:
        is_swap = inst_type_of(intent.inst_id) == 'SWAP'
        req = OrderRequest(
            inst_id=intent.inst_id,
            td_mode=intent.td_mode if is_swap else 'cash',
            side=intent.side,
            ord_type='conditional',
            sz=intent.size,
            px='-1',
            pos_side=intent.pos_side if is_swap else None,
            trigger_px=intent.price,
            algo_kind=intent.algo_kind,
        )
        algo_id = self.account.place_order(req)
        self._record('add_algo', {'instId': intent.inst_id, 'kind': intent.algo_kind,
                                  'triggerPx': intent.price, 'id': algo_id})
        return algo_id

    # ---------- chart intents ----------
    def handle_intent(self, intent):
        if isinstance(intent, ModifyOrderIntent):
            return self.modify(intent.order, intent.price)
        if isinstance(intent, CreateAlgoIntent):
            return self.add_algo(intent)
        raise ValidationError(f"Unsupported intent {intent!r}")

    def _on_intent(self, intent):
        # 总线回调没有调用方，失败只记录
        try:
            self.handle_intent(intent)
        except Exception as e:
            self.logger.error("intent %s failed: %s", intent, e)
