#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HistoryAnalyzer - 成交历史 / 资产曲线 / K 线的 DataFrame 视图
"""

from typing import Iterable

import pandas as pd

from okxtrader.core.models import AssetHistoryPoint, Candle, TradeHistoryItem, to_float

EQUITY_COLUMNS = ['ts', 'time', 'totalEq', 'change', 'changePct']
CANDLE_COLUMNS = ['trade_date', 'open', 'high', 'low', 'close']


def pnl_frame(trades: Iterable[TradeHistoryItem]) -> pd.DataFrame:
    """Fills oldest first, with a cumulative PnL column."""
    records = [
        (t.ts, t.inst_id, t.side, to_float(t.fill_px), to_float(t.fill_sz), to_float(t.fee), to_float(t.pnl))
        for t in trades or []
    ]
    df = pd.DataFrame.from_records(records, columns=['ts', 'instId', 'side', 'fillPx', 'fillSz', 'fee', 'pnl'])
    df = df.sort_values('ts', kind='stable').reset_index(drop=True)
    df.insert(1, 'time', pd.to_datetime(df['ts'], unit='ms'))
    df['cumPnl'] = df['pnl'].cumsum()
    return df


def trade_summary(trades: Iterable[TradeHistoryItem]) -> dict:
    """
    :return: {'total_pnl': float, 'win_rate': percent of fills with pnl > 0, 'count': int}
    """
    df = pnl_frame(trades)
    count = len(df)
    if count == 0:
        return {'total_pnl': 0.0, 'win_rate': 0.0, 'count': 0}
    return {
        'total_pnl': float(df['pnl'].sum()),
        'win_rate': float((df['pnl'] > 0).sum()) / count * 100.0,
        'count': count,
    }


def equity_frame(points: Iterable[AssetHistoryPoint]) -> pd.DataFrame:
    records = [(p.ts, p.total_eq) for p in points or []]
    df = pd.DataFrame.from_records(records, columns=['ts', 'totalEq'])
    df = df.sort_values('ts', kind='stable').reset_index(drop=True)
    df.insert(1, 'time', pd.to_datetime(df['ts'], unit='ms'))
    df['change'] = df['totalEq'].diff().fillna(0.0)
    df['changePct'] = (df['totalEq'].pct_change(fill_method=None) * 100).fillna(0.0)
    return df[EQUITY_COLUMNS]


def candles_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    records = [(c.time, c.open, c.high, c.low, c.close) for c in candles or []]
    df = pd.DataFrame.from_records(records, columns=['time', 'open', 'high', 'low', 'close'])
    df.insert(0, 'trade_date', pd.to_datetime(df['time'], unit='s'))
    return df.drop(columns=['time'])[CANDLE_COLUMNS]
