# -*- coding: utf-8 -*-
# okxtrader/core/kernel/syscalls.py
# Interfaces of the external collaborators the runtime talks to.
# Plain base classes with NotImplementedError.


class ChartSurface(object):
    """The chart rendering engine, seen only through what the overlay needs."""

    # ---- coordinate conversion ----
    def price_to_coordinate(self, price):
        """Return the Y pixel of `price`, or None when it is off-screen / not mappable"""
        raise NotImplementedError

    def coordinate_to_price(self, y):
        """Return the price at Y pixel `y`, or None"""
        raise NotImplementedError

    def visible_logical_range(self):
        """Return (from_index, to_index) of the visible bars; from < 0 means scrolled past the oldest bar"""
        raise NotImplementedError

    # ---- candle series ----
    def data(self):
        """Return the loaded candles, oldest first"""
        raise NotImplementedError

    def set_data(self, candles):
        """Replace the whole candle series"""
        raise NotImplementedError

    def update(self, candle):
        """Upsert the newest candle (same time replaces, newer time appends)"""
        raise NotImplementedError

    def fit_content(self):
        raise NotImplementedError


class RemoteHistorySync(object):
    """Cross-device backup of the equity series (a gist, a bucket, ...)."""

    def sync(self, local_points):
        """
        Merge `local_points` with the remote copy and upload if needed.
        :param local_points: list of {'ts': str ms, 'totalEq': float}
        :return: the merged list in the same shape, ascending by ts
        """
        raise NotImplementedError
