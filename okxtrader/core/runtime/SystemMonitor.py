#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SystemMonitor
- 余额告警：可用余额低于 min / 高于 max
- 操作日志：下单/改单/撤单记录，队列 + 后台线程批量落盘 (JSON lines)
"""

import json
import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from typing import Iterable, List

from okxtrader.core.models import AssetAlert, AssetBalance, to_float

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertHit:
    ccy: str
    kind: str           # below | above
    balance: float
    threshold: float

    @property
    def message(self) -> str:
        if self.kind == 'below':
            return f"Alert: {self.ccy} balance ({self.balance}) is below minimum ({self.threshold})!"
        return f"Alert: {self.ccy} balance ({self.balance}) is above maximum ({self.threshold})!"


def check_alerts(alerts: Iterable[AssetAlert], balances: Iterable[AssetBalance]) -> List[AlertHit]:
    """
    Enabled alerts whose currency is held. A blank min/max never fires;
    below-min wins over above-max.
    """
    by_ccy = {b.ccy: b for b in balances or []}
    hits = []
    for alert in alerts or []:
        if not alert.enabled or alert.ccy not in by_ccy:
            continue
        bal = to_float(by_ccy[alert.ccy].avail_bal)
        lo = to_float(alert.min, float('nan'))
        hi = to_float(alert.max, float('nan'))
        if bal < lo:
            hits.append(AlertHit(alert.ccy, 'below', bal, lo))
        elif bal > hi:
            hits.append(AlertHit(alert.ccy, 'above', bal, hi))
    return hits


class SystemMonitor:
    # ---------- 参数 ----------
    BATCH_SIZE = 200        # 满 N 条落盘
    FLUSH_SEC = 3           # 或每隔 T 秒落盘

    def __init__(self, alerts: Iterable[AssetAlert] = (), log_dir=None, on_alert=None):
        """
        :param alerts: AssetAlert rules from the config
        :param log_dir: where operation_log.log goes; None keeps operations in the logger only
        :param on_alert: callback(AlertHit), e.g. a UI toast
        """
        self.alerts = tuple(alerts or ())
        self.on_alert = on_alert
        self.logger = log
        self.op_file = None
        self.q = queue.Queue()
        self._stop = threading.Event()
        self.worker = None
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            self.op_file = open(os.path.join(log_dir, 'operation_log.log'), 'a', buffering=1, encoding='utf-8')
            self.worker = threading.Thread(target=self._flush_loop, name='op-log-flush', daemon=True)
            self.worker.start()

    def set_alerts(self, alerts):
        self.alerts = tuple(alerts or ())

    # ---------- 告警 ----------
    def check(self, balances) -> List[AlertHit]:
        hits = check_alerts(self.alerts, balances)
        for hit in hits:
            if hit.kind == 'below':
                self.logger.warning(hit.message)
            else:
                self.logger.info(hit.message)
            if self.on_alert is not None:
                self.on_alert(hit)
        return hits

    # ---------- 后台线程 ----------
    def _flush_loop(self):
        buf, last_flush = [], time.time()
        while not self._stop.is_set():
            try:
                buf.append(self.q.get(timeout=0.5))
            except queue.Empty:
                pass
            now = time.time()
            if len(buf) >= self.BATCH_SIZE or (buf and now - last_flush > self.FLUSH_SEC):
                self._write_batch(buf)
                buf.clear()
                last_flush = now
        # flush remaining
        while not self.q.empty():
            buf.append(self.q.get_nowait())
        if buf:
            self._write_batch(buf)

    def _write_batch(self, batch):
        try:
            self.op_file.writelines(line + "\n" for line in batch)
            self.op_file.flush()
        except OSError as e:
            self.logger.error("Failed batch write: %s", e)

    def close(self):
        self._stop.set()
        if self.worker is not None:
            self.worker.join()
            self.worker = None
        if self.op_file is not None:
            self.op_file.close()
            self.op_file = None

    # ---------- 对外 API ----------
    def record_operation(self, operation, details):
        entry = json.dumps({"ts": int(time.time() * 1000), "op": operation, "det": details}, ensure_ascii=False)
        self.logger.info("operation %s", entry)
        if self.op_file is None:
            return
        try:
            self.q.put_nowait(entry)
        except queue.Full:
            self.logger.warning("Operation queue full; drop record")
