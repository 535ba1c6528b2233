# -*- coding: utf-8 -*-
# tests/test_execution_engine.py
import pytest

from okxtrader.core.kernel.errors import ApiError, ValidationError
from okxtrader.core.kernel.event_bus import INTENT, EventBus
from okxtrader.core.models import Instrument, Order, OrderKind
from okxtrader.core.runtime.ChartOverlay import CreateAlgoIntent, ModifyOrderIntent
from okxtrader.core.runtime.ExecutionEngine import (
    ExecutionEngine, amend_request_for, estimated_cost, size_for_percentage,
)


class FakeAccount:
    def __init__(self, leverage_error=None):
        self.placed = []
        self.cancelled = []
        self.amended = []
        self.leverage = []
        self.leverage_error = leverage_error

    def set_leverage(self, inst_id, lever, mgn_mode):
        self.leverage.append((inst_id, lever, mgn_mode))
        if self.leverage_error is not None:
            raise self.leverage_error

    def place_order(self, req):
        self.placed.append(req)
        return 'ID%d' % len(self.placed)

    def cancel_order(self, inst_id, ord_id=None, algo_id=None):
        self.cancelled.append((inst_id, ord_id, algo_id))

    def amend_order(self, req):
        self.amended.append(req)


class FakeDriver:
    def __init__(self, account):
        self.account = account


class MonitorSpy:
    def __init__(self):
        self.ops = []

    def record_operation(self, op, details):
        self.ops.append((op, details))


@pytest.fixture
def account():
    return FakeAccount()


@pytest.fixture
def monitor():
    return MonitorSpy()


@pytest.fixture
def engine(account, monitor):
    driver = FakeDriver(account)
    return ExecutionEngine(lambda: driver, monitor=monitor)


def _order(ord_type='limit', kind=OrderKind.STANDARD, algo_id=None, trigger_px=None, ord_id='5'):
    return Order(ord_id=ord_id, inst_id='BTC-USDT-SWAP', side='sell', ord_type=ord_type, px='100', sz='1',
                 state='live', c_time=0, trigger_px=trigger_px, algo_id=algo_id, kind=kind)


# ---------- order form ----------
def test_submit_spot_uses_cash_mode(engine, account, monitor):
    assert engine.submit('buy', 'BTC-USDT', 'limit', '0.1', px='50000') == 'ID1'
    req = account.placed[0]
    assert (req.td_mode, req.side, req.pos_side, req.px) == ('cash', 'buy', None, '50000')
    assert account.leverage == []
    assert monitor.ops[0][0] == 'place'


def test_submit_swap_sets_leverage_first(engine, account):
    engine.submit('short', 'BTC-USDT-SWAP', 'market', '3', px='1', margin_mode='isolated', leverage=20)
    assert account.leverage == [('BTC-USDT-SWAP', 20, 'isolated')]
    req = account.placed[0]
    assert (req.side, req.pos_side, req.td_mode, req.px) == ('sell', 'short', 'isolated', None)


def test_submit_ignores_leverage_failure(monitor):
    account = FakeAccount(leverage_error=ApiError('59000', 'cannot change'))
    engine = ExecutionEngine(lambda: FakeDriver(account), monitor=monitor)
    assert engine.submit('long', 'BTC-USDT-SWAP', 'market', '1', leverage=10) == 'ID1'


def test_submit_conditional_keeps_trigger(engine, account):
    engine.submit('long', 'BTC-USDT-SWAP', 'conditional', '1', px='-1', trigger_px='90', algo_kind='tp')
    req = account.placed[0]
    assert (req.trigger_px, req.algo_kind) == ('90', 'tp')


@pytest.mark.parametrize('action,inst_id', [('long', 'BTC-USDT'), ('buy', 'BTC-USDT-SWAP')])
def test_submit_rejects_action_for_wrong_market(engine, account, action, inst_id):
    with pytest.raises(ValidationError):
        engine.submit(action, inst_id, 'market', '1')
    assert account.placed == []


# ---------- amend routing ----------
@pytest.mark.parametrize('order,field', [
    (_order('sl', OrderKind.STOP_LOSS, 'A', '90', 'A-sl'), 'new_sl_trigger_px'),
    (_order('tp', OrderKind.TAKE_PROFIT, 'A', '110', 'A-tp'), 'new_tp_trigger_px'),
    (_order('conditional', OrderKind.TRIGGER, 'A', '95', 'A'), 'new_trigger_px'),
    (_order('trigger', OrderKind.TRIGGER, 'A', '95', 'A'), 'new_trigger_px'),
    (_order('limit'), 'new_px'),
    (_order('post_only', trigger_px='95'), 'new_trigger_px'),
    (_order('post_only'), 'new_px'),
])
def test_amend_request_for_picks_field(order, field):
    req = amend_request_for(order, '123')
    assert req.changes() == {_camel(field): '123'}
    if order.is_algo:
        assert (req.algo_id, req.ord_id) == ('A', None)
    else:
        assert (req.algo_id, req.ord_id) == (None, '5')


def _camel(name):
    head, *rest = name.split('_')
    return head + ''.join(p.capitalize() for p in rest)


def test_modify_requires_price(engine, account):
    with pytest.raises(ValidationError):
        engine.modify(_order(), '')
    assert account.amended == []


# ---------- cancel ----------
def test_cancel_algo_leg_cancels_parent(engine, account):
    engine.cancel(_order('sl', OrderKind.STOP_LOSS, 'A', '90', 'A-sl'))
    assert account.cancelled == [('BTC-USDT-SWAP', None, 'A')]


def test_cancel_standard(engine, account, monitor):
    engine.cancel(_order())
    assert account.cancelled == [('BTC-USDT-SWAP', '5', None)]
    assert monitor.ops == [('cancel', {'instId': 'BTC-USDT-SWAP', 'id': '5'})]


# ---------- algo creation ----------
def test_add_algo_swap(engine, account):
    intent = CreateAlgoIntent(inst_id='BTC-USDT-SWAP', algo_kind='tp', price='95', side='buy', size='3',
                              td_mode='isolated', pos_side='short')
    assert engine.add_algo(intent) == 'ID1'
    req = account.placed[0]
    assert (req.ord_type, req.px, req.trigger_px, req.algo_kind) == ('conditional', '-1', '95', 'tp')
    assert (req.td_mode, req.pos_side, req.side, req.sz) == ('isolated', 'short', 'buy', '3')


def test_add_algo_spot_forces_cash(engine, account):
    intent = CreateAlgoIntent(inst_id='BTC-USDT', algo_kind='sl', price='90', side='sell', size='0.5',
                              td_mode='cross', pos_side='long')
    engine.add_algo(intent)
    req = account.placed[0]
    assert (req.td_mode, req.pos_side) == ('cash', None)


# ---------- bus ----------
def test_bus_intents_are_submitted(account, monitor):
    bus = EventBus()
    driver = FakeDriver(account)
    ExecutionEngine(lambda: driver, monitor=monitor, bus=bus)
    bus.publish(INTENT, ModifyOrderIntent(order=_order(), price='101'))
    assert account.amended[0].new_px == '101'


def test_bus_intent_failure_is_logged(monitor, caplog):
    class Failing(FakeAccount):
        def amend_order(self, req):
            raise ApiError('51503', 'Order does not exist')

    bus = EventBus()
    driver = FakeDriver(Failing())
    ExecutionEngine(lambda: driver, monitor=monitor, bus=bus)
    bus.publish(INTENT, ModifyOrderIntent(order=_order(), price='101'))
    assert 'failed' in caplog.text
    assert monitor.ops == []


def test_handle_intent_rejects_unknown(engine):
    with pytest.raises(ValidationError):
        engine.handle_intent(object())


# ---------- order form helpers ----------
def test_size_for_percentage():
    swap = Instrument('BTC-USDT-SWAP', 'BTC', 'USDT', 'SWAP', ct_val='0.01')
    assert size_for_percentage('1000', '50000', 50, swap, leverage=10) == '10'
    assert size_for_percentage('1000', '50000', 100) == '0.02000'
    assert size_for_percentage('1000', '0', 100) == ''


def test_estimated_cost():
    swap = Instrument('BTC-USDT-SWAP', 'BTC', 'USDT', 'SWAP', ct_val='0.01')
    assert estimated_cost('50000', '10', swap, leverage=10) == pytest.approx(500)
    assert estimated_cost('100', '2') == pytest.approx(200)
    assert estimated_cost('', '2') is None
