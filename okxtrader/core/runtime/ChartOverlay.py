#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ChartOverlay - 图表上的订单线 / 持仓线 与拖拽交互

ChartOverlaySynchronizer
    把规范化后的订单与持仓均价映射到图表 Y 坐标。只在 data_changed /
    viewport_changed 事件到来时重算，不做逐帧轮询。
    拖拽状态机: Idle -> OrderDragging | PositionDragging -> Idle
    - 拖订单线松手: ModifyOrderIntent(新价格)
    - 拖持仓线松手: CreateAlgoIntent(sl/tp, 新价格, 全部持仓数量, 平仓方向)
    - 鼠标移出图表等同于松手，使用最后一个有效价格
    意图通过 EventBus 的 intent 主题发出，由 ExecutionEngine 提交

ChartFeed
    K 线加载、10 秒刷新最新一根、0.8 秒用最新成交价合并最新一根、
    左侧滚动到底时向前补历史（单一 in-flight 保护）
"""

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from okxtrader.core.kernel.event_bus import DATA_CHANGED, INTENT, VIEWPORT_CHANGED, EventBus
from okxtrader.core.kernel.syscalls import ChartSurface
from okxtrader.core.models import Candle, Order, OrderKind, Position, to_float
from okxtrader.core.runtime.Poller import Poller
from okxtrader.drivers.okx.normalize import reconcile
from okxtrader.drivers.okx.util import calculate_pnl, format_number_for_api

log = logging.getLogger(__name__)

GREEN = '#10b981'
RED = '#ef4444'

CANDLE_REFRESH_SEC = 10.0
LIVE_PRICE_SEC = 0.8


def palette(color_mode='standard'):
    """(up, down) colors; 'reverse' is red-up / green-down."""
    if color_mode == 'reverse':
        return RED, GREEN
    return GREEN, RED


def _valid_price(price) -> bool:
    if price is None:
        return False
    try:
        price = float(price)
    except (TypeError, ValueError):
        return False
    return math.isfinite(price) and price > 0


def _valid_y(y) -> bool:
    if y is None:
        return False
    try:
        return math.isfinite(float(y))
    except (TypeError, ValueError):
        return False


def classify_drag(position: Position, candidate_price: float) -> str:
    """
    'tp' or 'sl' for a price dragged off the position line.
    Short: below entry is profit. Long/net-long: above entry is profit.
    A price equal to entry counts as 'sl'.
    """
    entry = position.entry_price
    if position.is_short:
        return 'tp' if candidate_price < entry else 'sl'
    return 'tp' if candidate_price > entry else 'sl'


def order_label(order: Order) -> str:
    if order.kind in (OrderKind.STOP_LOSS, OrderKind.TAKE_PROFIT) or order.ord_type in ('sl', 'tp'):
        return order.ord_type.upper()
    label = order.side.upper()
    if to_float(order.trigger_px) > 0:
        label += ' Trigger'
    return label


@dataclass(frozen=True)
class OverlayItem:
    order: Order
    y: float
    price: float
    label: str
    color: str
    estimated_pnl: Optional[float] = None


@dataclass(frozen=True)
class ModifyOrderIntent:
    order: Order
    price: str                      # API formatted


@dataclass(frozen=True)
class CreateAlgoIntent:
    inst_id: str
    algo_kind: str                  # sl | tp
    price: str                      # trigger price, API formatted
    side: str                       # closing side
    size: str                       # full position size
    td_mode: str                    # position margin mode
    pos_side: Optional[str] = None  # long | short, None for net


class GestureState(Enum):
    IDLE = 'idle'
    ORDER_DRAGGING = 'order_dragging'
    POSITION_DRAGGING = 'position_dragging'


class ChartOverlaySynchronizer:
    def __init__(self, chart: ChartSurface, inst_id: str, bus: EventBus = None, color_mode='standard'):
        self.chart = chart
        self.inst_id = inst_id
        self.bus = bus or EventBus()
        self.up_color, self.down_color = palette(color_mode)
        self._lock = threading.RLock()

        self.orders: List[Order] = []
        self.position: Optional[Position] = None
        self.items: List[OverlayItem] = []
        self.position_y: Optional[float] = None

        self.state = GestureState.IDLE
        self.dragging_order: Optional[Order] = None
        self.drag_position: Optional[Position] = None    # position the drag started from
        self.drag_y: Optional[float] = None
        self.drag_kind: Optional[str] = None
        self._last_price: Optional[float] = None

        self.bus.subscribe(DATA_CHANGED, self._on_change)
        self.bus.subscribe(VIEWPORT_CHANGED, self._on_change)

    def close(self):
        self.bus.unsubscribe(DATA_CHANGED, self._on_change)
        self.bus.unsubscribe(VIEWPORT_CHANGED, self._on_change)

    # ---------- inputs ----------
    def set_data(self, orders, position: Optional[Position]):
        with self._lock:
            self.orders = list(orders or [])
            self.position = position
        self.bus.publish(DATA_CHANGED, self.inst_id)

    def viewport_changed(self):
        self.bus.publish(VIEWPORT_CHANGED, self.inst_id)

    def _on_change(self, _message=None):
        self.recompute()

    # ---------- overlay ----------
    def _active_position(self) -> Optional[Position]:
        p = self.position
        if p is not None and p.inst_id == self.inst_id:
            return p
        return None

    def recompute(self) -> List[OverlayItem]:
        with self._lock:
            exclude = self.dragging_order.ord_id if self.dragging_order is not None else None
            position = self._active_position()
            items = []
            for order in reconcile(self.orders, self.inst_id, exclude_ord_id=exclude):
                price = order.anchor_price
                y = self.chart.price_to_coordinate(price)
                if not _valid_y(y):
                    continue
                pnl = None
                if position is not None and order.ord_type in ('sl', 'tp'):
                    pnl = calculate_pnl(position.entry_price, price, position.size,
                                        position.pos_side, position.contract_value)
                items.append(OverlayItem(
                    order=order,
                    y=y,
                    price=price,
                    label=order_label(order),
                    color=self.up_color if order.side == 'buy' else self.down_color,
                    estimated_pnl=pnl,
                ))
            self.items = items

            if position is not None:
                y = self.chart.price_to_coordinate(position.entry_price)
                self.position_y = y if _valid_y(y) else None
            else:
                self.position_y = None
            return items

    def click(self, y) -> Optional[str]:
        """Price under the cursor, formatted for an order form field."""
        price = self.chart.coordinate_to_price(y)
        if not _valid_price(price):
            return None
        return format_number_for_api(price)

    # ---------- gesture machine ----------
    def mouse_down_order(self, order: Order) -> bool:
        with self._lock:
            if self.state is not GestureState.IDLE:
                return False
            self.state = GestureState.ORDER_DRAGGING
            self.dragging_order = order
            self._last_price = None
        self.recompute()
        return True

    def mouse_down_position(self) -> bool:
        with self._lock:
            position = self._active_position()
            if self.state is not GestureState.IDLE or position is None:
                return False
            self.state = GestureState.POSITION_DRAGGING
            self.drag_position = position
            self.drag_kind = None
            self._last_price = None
            return True

    def _track(self, y):
        """Convert y, remember it when valid, classify when dragging the position."""
        price = self.chart.coordinate_to_price(y) if y is not None else None
        if not _valid_price(price):
            return
        self._last_price = float(price)
        if self.state is GestureState.POSITION_DRAGGING and self.drag_position is not None:
            self.drag_kind = classify_drag(self.drag_position, self._last_price)

    def mouse_move(self, y):
        with self._lock:
            if self.state is GestureState.IDLE:
                return
            self.drag_y = y
            self._track(y)

    def mouse_up(self, y=None):
        """
        Commit the drag.
        :return: the emitted intent, or None when there was nothing valid to commit
        """
        with self._lock:
            state = self.state
            if state is GestureState.IDLE:
                return None
            self._track(y)
            price = format_number_for_api(self._last_price) if self._last_price is not None else None
            intent = None
            if state is GestureState.ORDER_DRAGGING:
                if price:
                    intent = ModifyOrderIntent(order=self.dragging_order, price=price)
            elif price and self.drag_kind and self.drag_position is not None and self._active_position() is not None:
                # 拖拽期间持仓消失（已平仓或读取失败）则不提交
                position = self.drag_position
                intent = CreateAlgoIntent(
                    inst_id=position.inst_id,
                    algo_kind=self.drag_kind,
                    price=price,
                    side=position.close_side,
                    size=format_number_for_api(abs(position.size)),
                    td_mode=position.mgn_mode or 'cross',
                    pos_side=position.pos_side if position.pos_side in ('long', 'short') else None,
                )
            self.state = GestureState.IDLE
            self.dragging_order = None
            self.drag_position = None
            self.drag_y = None
            self.drag_kind = None
            self._last_price = None
        self.recompute()
        if intent is not None:
            log.info("drag committed: %s", intent)
            self.bus.publish(INTENT, intent)
        return intent

    def mouse_leave(self):
        return self.mouse_up(None)


class ChartFeed:
    """
    Candle series of one instrument/bar on a ChartSurface.

    :param market: MarketClient
    """

    def __init__(self, chart: ChartSurface, market, inst_id: str, bar: str = '1D', bus: EventBus = None):
        self.chart = chart
        self.market = market
        self.inst_id = inst_id
        self.bar = bar
        self.bus = bus
        self.alive = True
        self.exhausted = False
        self._loading = False
        self._lock = threading.Lock()
        self._pollers = []

    def _notify(self):
        if self.bus is not None:
            self.bus.publish(VIEWPORT_CHANGED, self.inst_id)

    def load_initial(self) -> int:
        candles = self.market.candles(self.inst_id, self.bar)
        if not self.alive or not candles:
            return 0
        self.chart.set_data(candles)
        self.chart.fit_content()
        self._notify()
        return len(candles)

    def refresh_latest(self):
        candles = self.market.candles(self.inst_id, self.bar)
        if self.alive and candles:
            self.chart.update(candles[-1])

    def merge_live_price(self):
        try:
            last = float(self.market.ticker(self.inst_id).last)
        except Exception as e:
            log.debug("live price %s unavailable: %s", self.inst_id, e)
            return
        if not self.alive or not math.isfinite(last):
            return
        data = self.chart.data()
        if not data:
            return
        c = data[-1]
        self.chart.update(Candle(
            time=c.time,
            open=c.open,
            high=max(c.high, last),
            low=min(c.low, last),
            close=last,
        ))

    def on_visible_range(self, from_index) -> int:
        if from_index is None or from_index >= 0:
            return 0
        return self.backfill()

    def backfill(self) -> int:
        """
        Prepend candles older than the oldest loaded one.
        :return: number of candles prepended; 0 while another backfill is in flight
        """
        with self._lock:
            if self._loading or self.exhausted:
                return 0
            self._loading = True
        try:
            data = self.chart.data()
            if not data:
                return 0
            try:
                older = self.market.candles(self.inst_id, self.bar, after=data[0].time, raise_errors=True)
            except Exception as e:
                # 失败不算到底，下次滚动再试
                log.warning("backfill %s %s before %s failed: %s", self.inst_id, self.bar, data[0].time, e)
                return 0
            if not self.alive:
                return 0
            if not older:
                self.exhausted = True
                log.info("no candles older than %s for %s %s", data[0].time, self.inst_id, self.bar)
                return 0
            self.chart.set_data(list(older) + list(self.chart.data()))
            self._notify()
            return len(older)
        finally:
            with self._lock:
                self._loading = False

    def start(self):
        self.load_initial()
        self._pollers = [
            Poller(self.refresh_latest, CANDLE_REFRESH_SEC, name=f'candles-{self.inst_id}').start(),
            Poller(self.merge_live_price, LIVE_PRICE_SEC, name=f'live-{self.inst_id}').start(),
        ]
        return self

    def stop(self):
        self.alive = False
        for p in self._pollers:
            p.stop()
        self._pollers = []
