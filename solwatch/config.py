"""Application configuration loaded from config.json, a .env file and the environment."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

DEFAULT_CONFIG_FILE = "config.json"

_LOG_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


@dataclass
class Config:
    """Settings for the wallet tracker."""

    rpc_endpoint: str = "https://api.mainnet-beta.solana.com"
    ws_endpoint: str = "wss://api.mainnet-beta.solana.com"
    wallets: list[str] = field(default_factory=list)
    tokens: list[str] = field(default_factory=list)
    log_level: str = "info"

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration keyed as in config.json."""
        return {
            "rpc_endpoint": self.rpc_endpoint,
            "ws_endpoint": self.ws_endpoint,
            "wallets": list(self.wallets),
            "tokens": list(self.tokens),
            "log_level": self.log_level,
        }

    def _apply_json(self, document: Any) -> None:
        if not isinstance(document, dict):
            raise ValueError("configuration file must hold a JSON object")
        for key, value in document.items():
            name = key.lower()
            if name in ("rpc_endpoint", "ws_endpoint", "log_level"):
                if value is None:
                    continue
                if not isinstance(value, str):
                    raise ValueError(f"configuration field {key!r} must be a string")
                setattr(self, name, value)
            elif name in ("wallets", "tokens"):
                value = [] if value is None else value
                if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                    raise ValueError(f"configuration field {key!r} must be a list of strings")
                setattr(self, name, list(value))


def load_config(path: str | os.PathLike[str] = DEFAULT_CONFIG_FILE) -> Config:
    """Build the configuration from defaults, the JSON file and environment variables.

    Raises ``OSError`` if the file cannot be read and ``ValueError`` if it is invalid.
    """
    load_dotenv(Path.cwd() / ".env")

    config = Config()
    config_path = Path(path)
    if config_path.exists():
        config._apply_json(json.loads(config_path.read_text(encoding="utf-8")))

    env = os.environ
    if env.get("SOLANA_RPC_ENDPOINT"):
        config.rpc_endpoint = env["SOLANA_RPC_ENDPOINT"]
    if env.get("SOLANA_WS_ENDPOINT"):
        config.ws_endpoint = env["SOLANA_WS_ENDPOINT"]
    if env.get("MONITOR_WALLETS"):
        config.wallets = env["MONITOR_WALLETS"].split(",")
    if env.get("MONITOR_TOKENS"):
        config.tokens = env["MONITOR_TOKENS"].split(",")
    if env.get("LOG_LEVEL"):
        config.log_level = env["LOG_LEVEL"]

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    level = _LOG_LEVELS.get(config.log_level.strip().lower(), logging.INFO)
    logging.getLogger("solwatch").setLevel(level)
    return config


def create_default_config_file(path: str | os.PathLike[str] = DEFAULT_CONFIG_FILE) -> bool:
    """Write an example configuration file unless one exists; return whether it was written."""
    config_path = Path(path)
    if config_path.exists():
        return False
    example = Config(
        wallets=["ExampleWallet1", "ExampleWallet2"],
        tokens=["ExampleTokenMint1", "ExampleTokenMint2"],
    )
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(example.to_dict(), indent=2), encoding="utf-8")
    return True