# -*- coding: utf-8 -*-
# okxtrader/drivers/okx/util.py
import math


def _to_number(x):
    try:
        return float(x)
    except (TypeError, ValueError):
        return float('nan')


def format_price(price) -> str:
    """
    按价格量级动态保留小数位：
    - < 0.0001: 8 位 (SHIB, PEPE 一类)
    - < 0.01: 6 位
    - < 1: 4 位
    - < 100: 3 位
    - 其余: 千分位 + 2 位
    """
    val = _to_number(price)
    if math.isnan(val):
        return '--'
    if val == 0:
        return '0.00'
    abs_val = abs(val)
    if abs_val < 0.0001:
        return f"{val:.8f}"
    if abs_val < 0.01:
        return f"{val:.6f}"
    if abs_val < 1:
        return f"{val:.4f}"
    if abs_val < 100:
        return f"{val:.3f}"
    return f"{val:,.2f}"


def format_amount(amount) -> str:
    val = _to_number(amount)
    if math.isnan(val):
        return '--'
    abs_val = abs(val)
    if abs_val > 1000:
        return f"{val:.0f}"
    if abs_val > 1:
        return f"{val:.2f}"
    if abs_val == 0:
        return '0.00'
    return f"{val:.4f}"


def format_pct(pct: float) -> str:
    return f"{'+' if pct > 0 else ''}{pct:.2f}%"


def format_number_for_api(num):
    """
    Render a number the way OKX accepts it in a JSON body.

    Never scientific notation (1e-7 is rejected), at most 10 decimals,
    trailing zeros stripped. Returns None for empty or non-finite input.
    """
    if num is None or num == '':
        return None
    try:
        n = float(num)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(n):
        return None

    if abs(n) < 1.0 and 'e-' in repr(n):
        exp = int(repr(n).split('e-')[1])
        text = f"{n:.{exp + 2}f}"
    else:
        text = f"{n:.10f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    if text in ('-0', ''):
        text = '0'
    return text


def calculate_pnl(entry_price: float, exit_price: float, size: float, side: str, contract_val: float = 1.0) -> float:
    """
    Estimated PnL of closing `size` contracts at `exit_price`.

    :param side: 'long' | 'short' | 'net'; net is priced like long, the sign of
                 a net-short position lives in `size`
    :param contract_val: ctVal of the instrument, 1 for spot
    """
    q = size * contract_val
    if side in ('long', 'net'):
        return (exit_price - entry_price) * q
    return (entry_price - exit_price) * q


def inst_type_of(inst_id: str) -> str:
    return 'SWAP' if 'SWAP' in (inst_id or '') else 'SPOT'
