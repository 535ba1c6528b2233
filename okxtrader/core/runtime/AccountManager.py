#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
AccountManager - 配置与 Driver 生命周期
- 启动时读取一次配置，每次修改都持久化
- 配置变化时整体重建 OkxDriver（以及资产历史记录器），不修改正在使用的实例
- runtime 组件通过 get_driver() 取当前 driver，不直接 new
"""

import dataclasses
import logging
import os
import threading
from typing import Callable, Optional

from okxtrader.configs.config_reader import ApiConfig, ConfigReader
from okxtrader.core.kernel.event_bus import EventBus
from okxtrader.core.kernel.syscalls import RemoteHistorySync
from okxtrader.core.runtime.AssetHistoryRecorder import AssetHistoryRecorder
from okxtrader.core.runtime.ExecutionEngine import ExecutionEngine
from okxtrader.core.runtime.Poller import BalancePoller, TradeDataPoller
from okxtrader.core.runtime.SystemMonitor import SystemMonitor
from okxtrader.drivers.okx.driver import OkxDriver
from okxtrader.drivers.okx.market import RatesCell
from okxtrader.utils.logger import setup_logger
from okxtrader.utils.store import LocalStore


class AccountManager:
    """
    Driver实例管理器

    Args:
        store: 本地持久化，默认 $OKXTRADER_HOME/state.json
        session: 注入的 HTTP session（测试用）
        remote_factory: token -> RemoteHistorySync，未配置 token 时不调用
        log_dir: 给定时写 okxtrader.log（滚动）与 operation_log.log
    """

    def __init__(self, store: LocalStore = None, session=None,
                 remote_factory: Callable[[str], RemoteHistorySync] = None,
                 clock=None, background_sync=True, monitor: SystemMonitor = None, log_dir=None):
        self.store = store or LocalStore()
        self.reader = ConfigReader(self.store)
        self.session = session
        self.remote_factory = remote_factory
        self.clock = clock
        self.background_sync = background_sync
        self.rates = RatesCell()
        self._lock = threading.RLock()
        self.logger = logging.getLogger(__name__)
        if log_dir:
            setup_logger(log_path=os.path.join(log_dir, "okxtrader.log"))

        self.config: ApiConfig = self.reader.load()
        self.monitor = monitor or SystemMonitor(self.config.alerts, log_dir=log_dir)
        self.recorder: Optional[AssetHistoryRecorder] = None
        self.driver: Optional[OkxDriver] = None
        self._build()
        self.logger.info("AccountManager initialized")

    def _build(self):
        """按当前配置快照构建全新的 recorder + driver"""
        remote = None
        if self.config.github_token and self.remote_factory is not None:
            remote = self.remote_factory(self.config.github_token)
        self.recorder = AssetHistoryRecorder(self.store, remote=remote, clock=self.clock,
                                             background=self.background_sync)
        self.driver = OkxDriver(self.config, session=self.session, rates=self.rates, recorder=self.recorder)
        self.monitor.set_alerts(self.config.alerts)

    def get_driver(self) -> OkxDriver:
        with self._lock:
            return self.driver

    # ---------- 配置 ----------
    def set_config(self, config: ApiConfig) -> ApiConfig:
        self.reader.save(config)
        with self._lock:
            self.config = config
            self._build()
        return config

    def update_config(self, **changes) -> ApiConfig:
        """
        Examples:
            manager.update_config(api_key='...', secret_key='...', passphrase='...')
            manager.update_config(refresh_interval=5000)
        """
        if 'alerts' in changes:
            changes['alerts'] = ApiConfig.from_dict({'alerts': changes['alerts']}).alerts
        with self._lock:
            new_config = dataclasses.replace(self.config, **changes)
        self.logger.info("config updated: %s", sorted(changes))
        return self.set_config(new_config)

    def seed_from_yaml(self, file_path, account='main') -> ApiConfig:
        return self.set_config(self.reader.seed_from_yaml(file_path, account=account, base=self.config))

    def startup_sync(self):
        """配置了远端同步时拉取合并一次；失败只记录"""
        recorder = self.recorder
        if recorder is None or recorder.remote is None:
            return None
        try:
            return recorder.sync_with_remote()
        except Exception as e:
            self.logger.warning("Startup sync failed: %s", e)
            return None

    # ---------- runtime 组件 ----------
    def refresh_seconds(self) -> float:
        return self.config.refresh_seconds

    def execution_engine(self, bus: EventBus = None) -> ExecutionEngine:
        return ExecutionEngine(self.get_driver, monitor=self.monitor, bus=bus)

    def trade_poller(self, inst_id, overlay=None) -> TradeDataPoller:
        return TradeDataPoller(self.get_driver, inst_id, overlay=overlay, monitor=self.monitor,
                               interval=self.refresh_seconds)

    def balance_poller(self) -> BalancePoller:
        return BalancePoller(self.get_driver, monitor=self.monitor, interval=self.refresh_seconds)

    def shutdown(self):
        self.monitor.close()
        self.logger.info("AccountManager shutdown complete")


# 全局AccountManager实例
_global_account_manager: Optional[AccountManager] = None


def get_account_manager(**kwargs) -> AccountManager:
    """
    获取全局AccountManager实例（单例模式）
    参数仅在首次创建时有效
    """
    global _global_account_manager
    if _global_account_manager is None:
        _global_account_manager = AccountManager(**kwargs)
    return _global_account_manager


def reset_account_manager():
    global _global_account_manager
    if _global_account_manager:
        _global_account_manager.shutdown()
        _global_account_manager = None
