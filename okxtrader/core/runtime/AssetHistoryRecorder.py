#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
AssetHistoryRecorder - 账户总权益采样
- 每次 balances() 成功后调用 record()
- 每小时最多一个点，最多保留 1000 个点（先进先出）
- 本地持久化；配置了远端同步时在后台线程上传
"""

import logging
import threading
import time
from typing import Iterable, List, Optional

from okxtrader.core.kernel.errors import ValidationError
from okxtrader.core.kernel.syscalls import RemoteHistorySync
from okxtrader.core.models import AssetBalance, AssetHistoryPoint, to_float
from okxtrader.utils.store import LocalStore

HISTORY_KEY = 'okx_asset_history_points'
SAMPLE_INTERVAL_MS = 3600 * 1000
MAX_POINTS = 1000

PERIOD_MS = {
    '1D': 24 * 3600 * 1000,
    '1W': 7 * 24 * 3600 * 1000,
    '1M': 30 * 24 * 3600 * 1000,
    '3M': 90 * 24 * 3600 * 1000,
}

log = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def merge_history(local: Iterable[dict], remote: Iterable[dict]) -> List[dict]:
    """
    Union of two {'ts', 'totalEq'} series keyed by ts, ascending.
    On a shared ts the local entry wins.
    """
    merged = {}
    for item in remote or []:
        merged[str(item['ts'])] = item
    for item in local or []:
        merged[str(item['ts'])] = item
    return sorted(merged.values(), key=lambda item: int(item['ts']))


def should_upload(merged: List[dict], remote: Optional[List[dict]]) -> bool:
    """Upload when there is no remote copy yet, or when the lengths differ."""
    if remote is None:
        return True
    return len(merged) != len(remote)


class BlobHistorySync(RemoteHistorySync):
    """
    Download, merge, upload-if-needed over a single remote JSON blob.
    Subclasses provide fetch() and upload().
    """

    def fetch(self) -> Optional[List[dict]]:
        """Remote series, or None when no remote copy exists yet"""
        raise NotImplementedError

    def upload(self, points: List[dict], create: bool):
        raise NotImplementedError

    def sync(self, local_points):
        remote = self.fetch()
        merged = merge_history(local_points, remote or [])
        if should_upload(merged, remote):
            self.upload(merged, create=remote is None)
        return merged


class AssetHistoryRecorder:
    def __init__(self, store: LocalStore, remote: RemoteHistorySync = None, clock=None, background=True):
        """
        :param store: where the series lives (key okx_asset_history_points)
        :param remote: sync collaborator, None when no sync token is configured
        :param clock: returns now in ms
        :param background: submit to remote on a daemon thread (False runs it inline)
        """
        self.store = store
        self.remote = remote
        self._clock = clock or now_ms
        self._background = background
        self._lock = threading.Lock()
        self._sync_thread = None

    # ---------- persistence ----------
    def _load(self) -> List[AssetHistoryPoint]:
        raw = self.store.get(HISTORY_KEY) or []
        points = []
        for item in raw:
            try:
                points.append(AssetHistoryPoint.from_dict(item))
            except (KeyError, TypeError, ValueError):
                log.debug("skip malformed history point %r", item)
        return points

    def _save(self, points: List[AssetHistoryPoint]):
        self.store.set(HISTORY_KEY, [p.to_dict() for p in points])

    def points(self) -> List[AssetHistoryPoint]:
        with self._lock:
            return self._load()

    # ---------- sampling ----------
    def record(self, balances: List[AssetBalance]) -> Optional[AssetHistoryPoint]:
        """
        :return: the appended point, or None when the last point is younger than an hour
        """
        if not balances:
            return None
        total_eq = sum(to_float(b.eq_usd) for b in balances)
        now = self._clock()
        with self._lock:
            points = self._load()
            if points and now - points[-1].ts <= SAMPLE_INTERVAL_MS:
                return None
            point = AssetHistoryPoint(ts=now, total_eq=total_eq)
            points.append(point)
            if len(points) > MAX_POINTS:
                points = points[-MAX_POINTS:]
            self._save(points)
            snapshot = [p.to_dict() for p in points]
        log.info("asset history point %.2f USD (%d points)", total_eq, len(snapshot))
        if self.remote is not None:
            self._submit(snapshot)
        return point

    def _submit(self, snapshot):
        if not self._background:
            self._push(snapshot)
            return
        t = threading.Thread(target=self._push, args=(snapshot,), name='asset-history-sync', daemon=True)
        self._sync_thread = t
        t.start()

    def _push(self, snapshot):
        try:
            self.remote.sync(snapshot)
        except Exception as e:
            log.warning("remote history sync failed: %s", e)

    def wait_sync(self, timeout=None):
        t = self._sync_thread
        if t is not None:
            t.join(timeout)

    # ---------- queries ----------
    def history(self, period: str = '1W') -> List[AssetHistoryPoint]:
        if period not in PERIOD_MS:
            raise ValidationError(f"Unknown period {period!r}, expected one of {sorted(PERIOD_MS)}")
        cutoff = self._clock() - PERIOD_MS[period]
        return [p for p in self.points() if p.ts >= cutoff]

    def sync_with_remote(self) -> List[AssetHistoryPoint]:
        """Pull-merge-persist against the remote copy. Errors propagate to the caller."""
        if self.remote is None:
            raise ValidationError("Remote sync token not configured")
        with self._lock:
            local = [p.to_dict() for p in self._load()]
        merged = self.remote.sync(local)
        with self._lock:
            # record() may have appended while the remote call was in flight
            current = [p.to_dict() for p in self._load()]
            points = [AssetHistoryPoint.from_dict(item) for item in merge_history(current, merged)]
            points = points[-MAX_POINTS:]
            self._save(points)
        log.info("history synced with remote: %d points", len(points))
        return points
