from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

from amm_engine.core import DEFAULT_SCALE
from amm_engine.quote.engine import DEFAULT_FEE_BPS, DEFAULT_FEE_DENOMINATOR, DEFAULT_TOLERANCE

_TOKEN_KEYS = ("token_x", "token_y", "lp_token")
_DEFAULT_AUTHORIZATION = {"token_x": True, "token_y": True, "lp_token": False}


def _non_empty_str(cfg: Mapping[str, Any], key: str) -> str:
    value = cfg.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"addresses.{key} must be a non-empty string")
    return value


@dataclass(frozen=True)
class PoolAddresses:
    """
    Deployed addresses, injected at startup and read-only afterwards.

    `authorization` lists which tokens need a spend authorization before the
    pool may move them for the account.
    """

    pool: str
    token_x: str
    token_y: str
    lp_token: str
    account: str | None = None
    authorization: Mapping[str, bool] = field(default_factory=lambda: dict(_DEFAULT_AUTHORIZATION))

    def token_address(self, token: str) -> str:
        if token not in _TOKEN_KEYS:
            raise KeyError(f"unknown token key: {token!r}")
        return getattr(self, token)

    def requires_authorization(self, token: str) -> bool:
        return bool(self.authorization.get(token, False))

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> "PoolAddresses":
        if not isinstance(cfg, Mapping):
            raise TypeError("'addresses' must be a dict")

        auth = cfg.get("authorization") or {}
        if not isinstance(auth, Mapping):
            raise TypeError("addresses.authorization must be a dict")
        unknown = set(auth) - set(_TOKEN_KEYS)
        if unknown:
            raise ValueError(f"addresses.authorization has unknown tokens: {sorted(unknown)}")
        merged = dict(_DEFAULT_AUTHORIZATION)
        merged.update({k: bool(v) for k, v in auth.items()})

        account = cfg.get("account")
        if account is not None and (not isinstance(account, str) or not account):
            raise ValueError("addresses.account must be a non-empty string if provided")

        return PoolAddresses(
            pool=_non_empty_str(cfg, "pool"),
            token_x=_non_empty_str(cfg, "token_x"),
            token_y=_non_empty_str(cfg, "token_y"),
            lp_token=_non_empty_str(cfg, "lp_token"),
            account=account,
            authorization=merged,
        )


@dataclass(frozen=True)
class EngineConfig:
    addresses: PoolAddresses
    scale: int = DEFAULT_SCALE
    fee_bps: int = DEFAULT_FEE_BPS
    fee_denominator: int = DEFAULT_FEE_DENOMINATOR
    ratio_tolerance: int = DEFAULT_TOLERANCE
    refresh_interval_s: float = 5.0
    confirmation_timeout_s: float = 60.0
    max_snapshot_age_s: float = 30.0
    history_window: int = 200

    def __post_init__(self):
        if self.scale < 0:
            raise ValueError("scale must be >= 0")
        if self.fee_denominator <= 0 or not 0 <= self.fee_bps < self.fee_denominator:
            raise ValueError("fee must satisfy 0 <= fee_bps < fee_denominator")
        if self.ratio_tolerance < 0:
            raise ValueError("ratio_tolerance must be >= 0")
        if self.refresh_interval_s <= 0:
            raise ValueError("refresh_interval_s must be > 0")
        if self.confirmation_timeout_s <= 0:
            raise ValueError("confirmation_timeout_s must be > 0")
        if self.max_snapshot_age_s <= 0:
            raise ValueError("max_snapshot_age_s must be > 0")
        if self.history_window <= 0:
            raise ValueError("history_window must be > 0")

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> "EngineConfig":
        if not isinstance(cfg, Mapping):
            raise TypeError("engine config must be a dict")
        if "addresses" not in cfg:
            raise ValueError("engine config requires 'addresses'")

        kwargs: Dict[str, Any] = {"addresses": PoolAddresses.from_dict(cfg["addresses"])}
        for key in ("scale", "fee_bps", "fee_denominator", "ratio_tolerance", "history_window"):
            if key in cfg:
                value = cfg[key]
                if isinstance(value, bool) or not isinstance(value, int):
                    raise TypeError(f"'{key}' must be an int")
                kwargs[key] = value
        for key in ("refresh_interval_s", "confirmation_timeout_s", "max_snapshot_age_s"):
            if key in cfg:
                value = cfg[key]
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise TypeError(f"'{key}' must be a number")
                kwargs[key] = float(value)
        return EngineConfig(**kwargs)


def load_engine_config(path: str | Path) -> EngineConfig:
    with open(path, "r", encoding="utf-8") as f:
        return EngineConfig.from_dict(json.load(f))
