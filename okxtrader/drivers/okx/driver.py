# -*- coding: utf-8 -*-
# okxtrader/drivers/okx/driver.py
# OKX driver: one immutable config snapshot -> gateway + market + account clients.
# A config change builds a new OkxDriver; a live one is never re-pointed.

import logging

from okxtrader.drivers.okx.account import AccountClient
from okxtrader.drivers.okx.market import MarketClient, RatesCell
from okxtrader.drivers.okx.okex import OkxGateway
from okxtrader.drivers.okx.util import inst_type_of

log = logging.getLogger(__name__)


class OkxDriver(object):
    """
    OKX driver facade.

    :param config: ApiConfig snapshot (credentials, base_url)
    :param session: optional requests.Session (tests inject a fake one)
    :param rates: RatesCell to share with a previous driver, so a rebuild keeps the last known rates
    :param recorder: AssetHistoryRecorder fed by balances()
    """

    def __init__(self, config, session=None, rates: RatesCell = None, recorder=None, clock=None):
        self.cex = 'OKX'
        self.config = config
        self.gateway = OkxGateway(config.credentials, host=config.base_url, session=session, clock=clock)
        self.market = MarketClient(self.gateway, rates=rates)
        self.account = AccountClient(self.gateway, self.market, recorder=recorder)
        log.info("OKX driver ready (keys configured: %s)", self.has_keys)

    @property
    def has_keys(self) -> bool:
        return self.gateway.has_keys

    @property
    def rates(self) -> RatesCell:
        return self.market.rates

    # -------------- ref-data / meta --------------
    def symbols(self, inst_type='SWAP'):
        """
        返回指定类型的交易对列表
        :param inst_type: 'SWAP' | 'SPOT'
        :return: list[str]，如 ['BTC-USDT-SWAP', 'ETH-USDT-SWAP', ...]
        """
        return [i.inst_id for i in self.market.instruments(inst_type)]

    def instrument(self, inst_id):
        """Instrument metadata for inst_id, None if the exchange does not list it."""
        for inst in self.market.instruments(inst_type_of(inst_id)):
            if inst.inst_id == inst_id:
                return inst
        return None

    def get_price_now(self, inst_id) -> float:
        return float(self.market.ticker(inst_id).last)
