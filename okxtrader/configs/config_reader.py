#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
配置读取器
- ApiConfig: 不可变配置快照（凭证 + 行为参数）
- ConfigReader: 从本地 JSON store 读取/保存，支持从 account.yaml 导入 OKX 凭证
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from okxtrader.core.models import AssetAlert, Credentials
from okxtrader.drivers.okx.okex import BASE_URL
from okxtrader.utils.store import LocalStore

CONFIG_KEY = 'okx_config'

# 原始记录使用 camelCase，这里映射到字段名
_CAMEL_KEYS = {
    'apiKey': 'api_key',
    'secretKey': 'secret_key',
    'refreshInterval': 'refresh_interval',
    'colorMode': 'color_mode',
    'githubToken': 'github_token',
    'baseUrl': 'base_url',
}


@dataclass(frozen=True)
class ApiConfig:
    api_key: str = ''
    secret_key: str = ''
    passphrase: str = ''
    language: str = 'en'                    # en | zh
    theme: str = 'dark'                     # dark | light
    refresh_interval: int = 10000           # ms
    color_mode: str = 'standard'            # standard: green up, reverse: red up
    alerts: Tuple[AssetAlert, ...] = field(default_factory=tuple)
    github_token: Optional[str] = None
    base_url: str = BASE_URL

    @property
    def has_keys(self) -> bool:
        return self.credentials.has_keys

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.api_key, self.secret_key, self.passphrase)

    @property
    def refresh_seconds(self) -> float:
        return max(int(self.refresh_interval), 1000) / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['alerts'] = [asdict(a) for a in self.alerts]
        return d

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> 'ApiConfig':
        """
        Merge a stored record over the defaults.

        Args:
            raw: snake_case or camelCase keys; unknown keys are ignored

        Returns:
            ApiConfig
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (raw or {}).items():
            name = _CAMEL_KEYS.get(key, key)
            if name in known:
                values[name] = value
        if 'alerts' in values:
            values['alerts'] = tuple(
                a if isinstance(a, AssetAlert) else AssetAlert(
                    ccy=a.get('ccy', ''),
                    min=str(a.get('min', '') or ''),
                    max=str(a.get('max', '') or ''),
                    enabled=bool(a.get('enabled', True)),
                )
                for a in values['alerts'] or []
            )
        if 'refresh_interval' in values:
            try:
                values['refresh_interval'] = int(values['refresh_interval'])
            except (TypeError, ValueError):
                values.pop('refresh_interval')
        return cls(**values)


class ConfigReader:
    """配置读取器类"""

    def __init__(self, store: LocalStore = None):
        self.store = store or LocalStore()
        self._logger = logging.getLogger(__name__)

    def load(self) -> ApiConfig:
        raw = self.store.get(CONFIG_KEY)
        if raw is not None and not isinstance(raw, dict):
            self._logger.warning("stored %s is not a record, using defaults", CONFIG_KEY)
            raw = None
        return ApiConfig.from_dict(raw)

    def save(self, config: ApiConfig):
        self.store.set(CONFIG_KEY, config.to_dict())
        self._logger.info("config saved (keys configured: %s)", config.has_keys)

    def load_yaml(self, file_path) -> Dict[str, Any]:
        """
        加载YAML配置文件

        Raises:
            FileNotFoundError: 配置文件不存在
            yaml.YAMLError: YAML解析错误
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"配置文件不存在: {file_path}")
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            self._logger.error(f"YAML解析错误 {file_path}: {e}")
            raise

    def seed_from_yaml(self, file_path, account: str = 'main', base: ApiConfig = None) -> ApiConfig:
        """
        Copy OKX credentials from an account.yaml of the form
        accounts.okx.<account>.{api_key, api_secret, passphrase}.

        Returns:
            ApiConfig: `base` (or the stored config) with the credentials replaced
        """
        config = self.load_yaml(file_path)
        okx_accounts = (config.get('accounts') or {}).get('okx') or {}
        if account not in okx_accounts:
            raise KeyError(f"账户 {account} 不存在于 okx 配置中: {list(okx_accounts)}")
        creds = okx_accounts[account] or {}
        current = base or self.load()
        merged = current.to_dict()
        merged.update(
            api_key=str(creds.get('api_key', '') or ''),
            secret_key=str(creds.get('api_secret', '') or ''),
            passphrase=str(creds.get('passphrase', '') or ''),
        )
        self._logger.info(f"从 {file_path} 导入 OKX 账户: {account}")
        return ApiConfig.from_dict(merged)
