# -*- coding: utf-8 -*-
# tests/test_asset_history.py
import pytest

from okxtrader.core.kernel.errors import ValidationError
from okxtrader.core.kernel.syscalls import RemoteHistorySync
from okxtrader.core.models import AssetBalance, AssetHistoryPoint
from okxtrader.core.runtime.AssetHistoryRecorder import (
    HISTORY_KEY, MAX_POINTS, AssetHistoryRecorder, BlobHistorySync, merge_history, should_upload,
)

HOUR = 3600 * 1000


def _balances(*eq):
    return [AssetBalance(ccy=f'C{i}', avail_bal='1', frozen_bal='0', eq_usd=str(v)) for i, v in enumerate(eq)]


class MemoryBlob(BlobHistorySync):
    def __init__(self, remote=None, fail=False):
        self.remote = remote
        self.fail = fail
        self.uploads = []

    def fetch(self):
        if self.fail:
            raise ConnectionError('remote down')
        return None if self.remote is None else list(self.remote)

    def upload(self, points, create):
        self.uploads.append((points, create))
        self.remote = list(points)


def test_first_record_appends_total_equity(store, clock):
    rec = AssetHistoryRecorder(store, clock=clock)
    point = rec.record(_balances(100, 50.5))
    assert point == AssetHistoryPoint(ts=clock.now, total_eq=150.5)
    assert store.get(HISTORY_KEY) == [{'ts': str(clock.now), 'totalEq': 150.5}]


def test_twice_within_an_hour_keeps_one_point(store, clock):
    rec = AssetHistoryRecorder(store, clock=clock)
    rec.record(_balances(100))
    clock.advance(HOUR)
    assert rec.record(_balances(200)) is None
    assert len(rec.points()) == 1
    clock.advance(1)
    assert rec.record(_balances(300)) is not None
    assert [p.total_eq for p in rec.points()] == [100, 300]


def test_empty_balances_record_nothing(store, clock):
    rec = AssetHistoryRecorder(store, clock=clock)
    assert rec.record([]) is None
    assert rec.points() == []


def test_cap_evicts_oldest(store, clock):
    start = clock.now
    store.set(HISTORY_KEY, [{'ts': str(start + i * HOUR * 2), 'totalEq': float(i)} for i in range(MAX_POINTS)])
    clock.now = start + MAX_POINTS * HOUR * 2
    AssetHistoryRecorder(store, clock=clock).record(_balances(42))
    points = AssetHistoryRecorder(store, clock=clock).points()
    assert len(points) == MAX_POINTS
    assert points[0].total_eq == 1.0
    assert points[-1].total_eq == 42.0
    ts = [p.ts for p in points]
    assert ts == sorted(ts)


@pytest.mark.parametrize('period,days', [('1D', 1), ('1W', 7), ('1M', 30), ('3M', 90)])
def test_history_period_cutoff(store, clock, period, days):
    now = clock.now
    cutoff = now - days * 24 * HOUR
    store.set(HISTORY_KEY, [
        {'ts': str(cutoff - 1), 'totalEq': 1},
        {'ts': str(cutoff), 'totalEq': 2},
        {'ts': str(now), 'totalEq': 3},
    ])
    rec = AssetHistoryRecorder(store, clock=clock)
    assert [p.total_eq for p in rec.history(period)] == [2, 3]


def test_history_never_synthesizes(store, clock):
    assert AssetHistoryRecorder(store, clock=clock).history('1D') == []


def test_history_unknown_period(store, clock):
    with pytest.raises(ValidationError):
        AssetHistoryRecorder(store, clock=clock).history('5Y')


def test_merge_is_idempotent():
    series = [{'ts': '3', 'totalEq': 3}, {'ts': '1', 'totalEq': 1}, {'ts': '2', 'totalEq': 2}]
    once = merge_history(series, series)
    assert merge_history(once, once) == once
    assert [p['ts'] for p in once] == ['1', '2', '3']


def test_merge_union_local_wins():
    local = [{'ts': '1', 'totalEq': 10}, {'ts': '3', 'totalEq': 30}]
    remote = [{'ts': '1', 'totalEq': 99}, {'ts': '2', 'totalEq': 20}]
    assert merge_history(local, remote) == [
        {'ts': '1', 'totalEq': 10}, {'ts': '2', 'totalEq': 20}, {'ts': '3', 'totalEq': 30},
    ]


def test_should_upload_naive_length_check():
    merged = [{'ts': '1', 'totalEq': 1}]
    assert should_upload(merged, None)
    assert should_upload(merged, [])
    assert not should_upload(merged, [{'ts': '1', 'totalEq': 5}])


def test_blob_sync_creates_then_updates_only_on_length_change():
    blob = MemoryBlob()
    blob.sync([{'ts': '1', 'totalEq': 1}])
    assert blob.uploads[-1][1] is True
    blob.sync([{'ts': '1', 'totalEq': 1}])
    assert len(blob.uploads) == 1
    blob.sync([{'ts': '2', 'totalEq': 2}])
    assert blob.uploads[-1] == ([{'ts': '1', 'totalEq': 1}, {'ts': '2', 'totalEq': 2}], False)


def test_append_submits_to_remote(store, clock):
    blob = MemoryBlob()
    rec = AssetHistoryRecorder(store, remote=blob, clock=clock)
    rec.record(_balances(7))
    rec.wait_sync(5)
    assert blob.remote == [{'ts': str(clock.now), 'totalEq': 7.0}]


def test_remote_failure_never_rolls_back_local(store, clock):
    rec = AssetHistoryRecorder(store, remote=MemoryBlob(fail=True), clock=clock, background=False)
    assert rec.record(_balances(7)) is not None
    assert len(rec.points()) == 1


def test_sync_with_remote_persists_merged(store, clock):
    store.set(HISTORY_KEY, [{'ts': '2', 'totalEq': 2}])
    blob = MemoryBlob(remote=[{'ts': '1', 'totalEq': 1}])
    rec = AssetHistoryRecorder(store, remote=blob, clock=clock)
    points = rec.sync_with_remote()
    assert [p.ts for p in points] == [1, 2]
    assert store.get(HISTORY_KEY) == [{'ts': '1', 'totalEq': 1.0}, {'ts': '2', 'totalEq': 2.0}]


def test_sync_with_remote_requires_collaborator(store, clock):
    with pytest.raises(ValidationError):
        AssetHistoryRecorder(store, clock=clock).sync_with_remote()


def test_sync_with_remote_applies_cap(store, clock):
    store.set(HISTORY_KEY, [{'ts': str(clock.now), 'totalEq': 5}])
    blob = MemoryBlob(remote=[{'ts': str(i), 'totalEq': float(i)} for i in range(1, MAX_POINTS + 1)])
    points = AssetHistoryRecorder(store, remote=blob, clock=clock).sync_with_remote()
    assert len(points) == MAX_POINTS
    assert points[0].ts == 2
    assert points[-1] == AssetHistoryPoint(ts=clock.now, total_eq=5.0)
    assert len(store.get(HISTORY_KEY)) == MAX_POINTS


class AppendDuringSync(RemoteHistorySync):
    """Remote whose first sync overlaps with a local append."""

    def __init__(self, remote_points):
        self.remote_points = remote_points
        self.recorder = None
        self.appended = False

    def sync(self, local_points):
        if not self.appended:
            self.appended = True
            self.recorder.record(_balances(9))
        return merge_history(local_points, self.remote_points)


def test_sync_with_remote_keeps_concurrent_append(store, clock):
    earlier = clock.now - 2 * HOUR
    store.set(HISTORY_KEY, [{'ts': str(earlier), 'totalEq': 1}])
    remote = AppendDuringSync([{'ts': '1', 'totalEq': 0.5}])
    rec = AssetHistoryRecorder(store, remote=remote, clock=clock, background=False)
    remote.recorder = rec
    points = rec.sync_with_remote()
    assert [p.ts for p in points] == [1, earlier, clock.now]
    assert [p.ts for p in rec.points()] == [1, earlier, clock.now]
