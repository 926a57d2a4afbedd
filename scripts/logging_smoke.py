#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import tempfile
import time
from pathlib import Path

from amm_engine.utils.logger import (
    get_logger,
    init_logging,
    log_debug,
    log_exception,
    log_info,
    log_operation_trace,
    log_pool_refresh,
    log_warn,
)


def _load_config(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _write_temp_config(config: dict, temp_dir: Path) -> Path:
    temp_dir.mkdir(parents=True, exist_ok=True)
    temp_path = temp_dir / "logging_smoke.json"
    temp_path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return temp_path


def main() -> None:
    parser = argparse.ArgumentParser(description="AMM engine logging smoke script.")
    parser.add_argument("--mode", default=None, help="logging profile name")
    parser.add_argument("--run-id", default=None, help="run id for log context")
    parser.add_argument("--no-file", action="store_true", help="disable file logging")
    parser.add_argument("--file-path", default=None, help="file path template override")
    args = parser.parse_args()

    cfg = _load_config(Path("configs/logging.json").resolve())
    profiles = cfg.get("profiles", {})
    if not isinstance(profiles, dict):
        raise TypeError("logging.json 'profiles' must be a dict")

    mode = args.mode or str(cfg.get("active_profile") or "default")
    if mode not in profiles:
        raise KeyError(f"logging profile not found: {mode}")

    run_id = args.run_id or f"smoke_{int(time.time())}"
    profile = dict(profiles[mode])
    handlers_cfg = dict(profile.get("handlers", {}))
    file_cfg = dict(handlers_cfg.get("file", {}) or {})
    file_cfg["enabled"] = not args.no_file
    file_cfg["path"] = args.file_path or "artifacts/runs/test_{run_id}/logs/smoke_{mode}.jsonl"
    handlers_cfg["file"] = file_cfg
    profile["handlers"] = handlers_cfg
    profiles[mode] = profile

    with tempfile.TemporaryDirectory(prefix="amm_logging_smoke_") as temp_dir:
        init_logging(config_path=str(_write_temp_config(cfg, Path(temp_dir))), run_id=run_id, mode=mode)
        logger = get_logger("amm_engine.smoke")

        log_info(logger, "smoke.start", reserve=10**30)
        log_warn(logger, "smoke.warn", detail="stale snapshot")
        try:
            raise ValueError("smoke exception")
        except ValueError:
            log_exception(logger, "smoke.exception", detail="handled")
        log_operation_trace(logger, "operation.transition", op_id="op-0", phase="authorizing", step=1)
        log_pool_refresh(logger, "pool.refreshed", reserve_x=500, reserve_y=500)
        log_debug(logger, "smoke.debug", detail="debug path")

        print(f"logging mode: {mode}")
        if file_cfg["enabled"]:
            resolved = Path(file_cfg["path"].format(run_id=run_id, mode=mode))
            print(f"file logging: enabled -> {resolved}")
        else:
            print("file logging: disabled (stdout only)")


if __name__ == "__main__":
    main()
