# -*- coding: utf-8 -*-
# tests/test_util.py
import pytest

from okxtrader.drivers.okx.util import (
    calculate_pnl, format_amount, format_number_for_api, format_pct, format_price, inst_type_of,
)


@pytest.mark.parametrize('entry,exit_,size,side,ct_val,expected', [
    (100, 110, 2, 'long', 1, 20),
    (100, 90, 2, 'short', 1, 20),
    (100, 110, 2, 'short', 1, -20),
    (100, 90, 2, 'long', 1, -20),
    (100, 110, 2, 'net', 1, 20),
    (100, 90, -2, 'net', 1, 20),
    (50000, 51000, 10, 'long', 0.01, 100),
])
def test_calculate_pnl(entry, exit_, size, side, ct_val, expected):
    assert calculate_pnl(entry, exit_, size, side, ct_val) == pytest.approx(expected)


@pytest.mark.parametrize('value,expected', [
    (0.0000001, '0.0000001'),
    (123.5, '123.5'),
    (100.0, '100'),
    ('42.10', '42.1'),
    (1 / 3, '0.3333333333'),
    (-0.0, '0'),
    ('', None),
    (None, None),
    ('abc', None),
    (float('nan'), None),
    (float('inf'), None),
])
def test_format_number_for_api(value, expected):
    assert format_number_for_api(value) == expected


@pytest.mark.parametrize('value,expected', [
    (0.00001234, '0.00001234'),
    (0.005, '0.005000'),
    (0.5, '0.5000'),
    (12.3456, '12.346'),
    (12345.678, '12,345.68'),
    (0, '0.00'),
    ('x', '--'),
])
def test_format_price(value, expected):
    assert format_price(value) == expected


def test_format_amount_and_pct():
    assert format_amount(12345.6) == '12346'
    assert format_amount(12.346) == '12.35'
    assert format_amount(0.12346) == '0.1235'
    assert format_pct(1.234) == '+1.23%'
    assert format_pct(-1.5) == '-1.50%'


@pytest.mark.parametrize('inst_id,expected', [
    ('BTC-USDT-SWAP', 'SWAP'),
    ('BTC-USDT', 'SPOT'),
])
def test_inst_type_of(inst_id, expected):
    assert inst_type_of(inst_id) == expected
