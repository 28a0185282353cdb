"""
core/config.py: 全局配置

从 YAML 文件加载配置（路径取 CONFIG_PATH，默认 ./config.yaml），
通过点号路径读取：

    from core.config import cfg
    cfg.get("ai.provider.base_url", "")

配置文件不存在时视为空配置，各调用方自行回落到环境变量。
"""

import copy
import os
from typing import Any

import yaml

VERSION = "1.0.0"
API_BASE = "/api"


class Config:
    def __init__(self, path: str = ""):
        self.path = path or os.getenv("CONFIG_PATH", "./config.yaml")
        self.config: dict = {}
        self._overrides: dict = {}
        self.reload()

    def reload(self) -> dict:
        data = {}
        if os.path.exists(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"配置文件格式错误: {self.path}")
        self.config = data
        for key, value in self._overrides.items():
            self._assign(key, value)
        return self.config

    def _assign(self, key: str, value: Any) -> None:
        node = self.config
        parts = str(key).split(".")
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value

    def set(self, key: str, value: Any) -> None:
        self._overrides[key] = value
        self._assign(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self.config
        for part in str(key).split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        if node is None:
            return default
        return node

    def snapshot(self) -> dict:
        return copy.deepcopy(self.config)


cfg = Config()


def set_config(key: str, value: Any) -> None:
    cfg.set(key, value)


def app_env() -> str:
    return str(cfg.get("app.env", "") or os.getenv("APP_ENV", "") or "development").strip().lower()


def is_production() -> bool:
    return app_env() == "production"
