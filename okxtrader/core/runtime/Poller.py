#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
轮询循环
- Poller: 单个自调度循环，一次 tick 跑完后才等待下一个间隔，自身不会重叠
- TradeDataPoller: 交易页数据（ticker / 挂单 / 持仓 / 合约信息 / 余额）
- BalancePoller: 首页数据（余额 + 告警 + 汇率）
不同循环之间互不协调，各自只保留最近一次完成的结果
"""

import logging
import threading
from typing import Callable, Optional

from okxtrader.core.models import TradeSnapshot

log = logging.getLogger(__name__)


class Poller:
    """
    Runs `fn` every `interval` seconds on a daemon thread.

    The first tick runs immediately. `interval` may be a callable so a config
    change is picked up on the next wait.
    """

    def __init__(self, fn: Callable[[], None], interval, name: str = None):
        self.fn = fn
        self.interval = interval
        self.name = name or getattr(fn, '__name__', 'poller')
        self._stop = threading.Event()
        self._thread = None

    @property
    def alive(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    def _wait_seconds(self) -> float:
        value = self.interval() if callable(self.interval) else self.interval
        return max(float(value), 0.05)

    def tick(self):
        try:
            self.fn()
        except Exception as e:
            log.warning("%s tick failed: %s", self.name, e)

    def _run(self):
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self._wait_seconds())

    def start(self):
        if self._thread is not None:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = 2.0):
        self._stop.set()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout)
        self._thread = None


class TradeDataPoller:
    """
    One tick = one consistent fetch round for the active instrument.

    :param get_driver: returns the current OkxDriver (it is rebuilt on config change)
    :param overlay: ChartOverlaySynchronizer fed with orders and the position
    :param monitor: SystemMonitor checked against fresh balances
    """

    def __init__(self, get_driver, inst_id, overlay=None, monitor=None, interval=6.0):
        self.get_driver = get_driver
        self.inst_id = inst_id
        self.overlay = overlay
        self.monitor = monitor
        self.snapshot: Optional[TradeSnapshot] = None
        self._lock = threading.Lock()
        self._alive = True
        self._poller = Poller(self.poll_once, interval, name=f'trade-poll-{inst_id}')

    @property
    def alive(self) -> bool:
        return self._alive

    def poll_once(self) -> Optional[TradeSnapshot]:
        driver = self.get_driver()
        inst_id = self.inst_id
        try:
            ticker = driver.market.ticker(inst_id)
        except Exception as e:
            log.debug("ticker %s unavailable: %s", inst_id, e)
            ticker = None
        orders = driver.account.open_orders(inst_id)
        positions = driver.account.positions()
        instrument = driver.instrument(inst_id)
        balances = driver.account.balances()

        # 视图已关闭：丢弃结果，不再写共享状态
        if not self._alive:
            return None
        snapshot = TradeSnapshot(
            inst_id=inst_id,
            ticker=ticker,
            orders=orders,
            positions=positions,
            instrument=instrument,
            balances=balances,
        )
        with self._lock:
            self.snapshot = snapshot
        if self.overlay is not None:
            self.overlay.set_data(orders, snapshot.position)
        if self.monitor is not None:
            self.monitor.check(balances)
        return snapshot

    def latest(self) -> Optional[TradeSnapshot]:
        with self._lock:
            return self.snapshot

    def start(self):
        self._alive = True
        self._poller.start()
        return self

    def stop(self):
        self._alive = False
        self._poller.stop()


class BalancePoller:
    """Balances (which also feed the asset history), alerts, then exchange rates."""

    def __init__(self, get_driver, monitor=None, interval=10.0):
        self.get_driver = get_driver
        self.monitor = monitor
        self.balances = []
        self.rates = {}
        self._alive = True
        self._poller = Poller(self.poll_once, interval, name='balance-poll')

    def poll_once(self):
        driver = self.get_driver()
        balances = driver.account.balances()
        if not self._alive:
            return
        self.balances = balances
        if self.monitor is not None:
            self.monitor.check(balances)
        rates = driver.market.exchange_rates()
        if self._alive:
            self.rates = rates

    def start(self):
        self._alive = True
        self._poller.start()
        return self

    def stop(self):
        self._alive = False
        self._poller.stop()
