import logging
import json
from logging import Logger
from functools import lru_cache
from datetime import datetime, timezone
from dataclasses import asdict, is_dataclass
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Any


_DEFAULT_CONFIG: dict[str, Any] = {
    "level": "INFO",
    "debug": {"enabled": False, "modules": []},
    "handlers": {"console": {"enabled": True}},
    "format": {"json": True, "timestamp_utc": True},
}

_CONFIGURED = False
_RUN_ID: str | None = None
_MODE: str | None = None
_DEBUG_ENABLED = False
_DEBUG_MODULES: set[str] = set()


def _default_config_path() -> Path:
    return Path(__file__).resolve().parents[3] / "configs" / "logging.json"


def _load_logging_config(config_path: str | None = None) -> dict[str, Any]:
    path = Path(config_path) if config_path else _default_config_path()
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    return {"active_profile": "default", "profiles": {"default": dict(_DEFAULT_CONFIG)}}


def _select_profile(cfg: dict[str, Any], mode: str | None) -> dict[str, Any]:
    profiles = cfg.get("profiles")
    if not isinstance(profiles, dict):
        # flat (profile-less) config
        return cfg
    name = mode if mode in profiles else cfg.get("active_profile", "default")
    profile = profiles.get(name)
    if not isinstance(profile, dict):
        raise KeyError(f"logging profile not found: {name}")
    return profile


def safe_jsonable(obj: Any) -> Any:
    """Best-effort conversion of log context into JSON-serialisable values.

    Large integers (scaled token amounts) are kept exact as strings once they
    exceed the float-safe range so log consumers never round them.
    """
    if obj is None or isinstance(obj, (str, bool, float)):
        return obj
    if isinstance(obj, int):
        return obj if abs(obj) < 2**53 else str(obj)
    if isinstance(obj, Fraction):
        return f"{obj.numerator}/{obj.denominator}"
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return obj.as_posix()
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, BaseException):
        return f"{type(obj).__name__}: {obj}"
    if is_dataclass(obj) and not isinstance(obj, type):
        return safe_jsonable(asdict(obj))
    if isinstance(obj, dict):
        return {str(k): safe_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [safe_jsonable(v) for v in obj]
    if hasattr(obj, "to_dict"):
        return safe_jsonable(obj.to_dict())
    return repr(obj)


def _debug_module_matches(logger_name: str, module: str) -> bool:
    """Match `module` against a dotted logger name, with or without the package prefix."""
    if logger_name == module or logger_name.startswith(module + "."):
        return True
    parts = logger_name.split(".")
    if parts and parts[0] == "amm_engine":
        stripped = ".".join(parts[1:])
        return stripped == module or stripped.startswith(module + ".")
    return False


class ContextFilter(logging.Filter):
    """Guarantees record.context and record.category always exist."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            record.context = None
        if not hasattr(record, "category"):
            record.category = None
        return True


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter for deterministic, parseable logs."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": created.isoformat(),
            "ts_ms": int(record.created * 1000),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "event": record.getMessage(),
            "msg": record.getMessage(),
        }

        category = getattr(record, "category", None)
        if category:
            payload["category"] = category

        context = getattr(record, "context", None)
        if context:
            payload["context"] = safe_jsonable(context)

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def init_logging(
    config_path: str | None = None,
    *,
    run_id: str | None = None,
    mode: str | None = None,
) -> None:
    """Configure the root logger from a profile in logging.json.

    Call once during app bootstrap. File handler paths may contain
    `{run_id}` and `{mode}` placeholders.
    """
    global _CONFIGURED, _RUN_ID, _MODE, _DEBUG_ENABLED, _DEBUG_MODULES

    cfg = _select_profile(_load_logging_config(config_path), mode)
    level = getattr(logging, str(cfg.get("level", "INFO")).upper(), logging.INFO)
    debug_cfg = cfg.get("debug", {}) or {}
    handlers_cfg = cfg.get("handlers", {}) or {}

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    console_cfg = handlers_cfg.get("console", {}) or {}
    if console_cfg.get("enabled", True):
        console = logging.StreamHandler()
        console.setLevel(getattr(logging, str(console_cfg.get("level", "DEBUG")).upper(), logging.DEBUG))
        console.addFilter(ContextFilter())
        console.setFormatter(JsonFormatter())
        root.addHandler(console)

    file_cfg = handlers_cfg.get("file", {}) or {}
    if file_cfg.get("enabled", False):
        template = str(file_cfg.get("path", "artifacts/runs/{run_id}/logs/{mode}.jsonl"))
        path = Path(template.format(run_id=run_id or "default", mode=mode or "default"))
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(getattr(logging, str(file_cfg.get("level", "INFO")).upper(), logging.INFO))
        file_handler.addFilter(ContextFilter())
        file_handler.setFormatter(JsonFormatter())
        root.addHandler(file_handler)

    _RUN_ID = run_id
    _MODE = mode
    _DEBUG_ENABLED = bool(debug_cfg.get("enabled", False))
    _DEBUG_MODULES = set(debug_cfg.get("modules", []) or [])
    _CONFIGURED = True

    get_logger.cache_clear()


@lru_cache(None)
def get_logger(name: str = "amm_engine") -> Logger:
    logger = logging.getLogger(name)

    if _CONFIGURED:
        # root handlers own formatting once init_logging() ran
        logger.setLevel(logging.NOTSET)
        return logger

    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def _with_run_context(context: dict[str, Any]) -> dict[str, Any]:
    if _RUN_ID is not None:
        context.setdefault("run_id", _RUN_ID)
    if _MODE is not None:
        context.setdefault("mode", _MODE)
    return context


def log_debug(logger: Logger, msg: str, **context):
    if not _DEBUG_ENABLED:
        return
    if _DEBUG_MODULES and not any(_debug_module_matches(logger.name, m) for m in _DEBUG_MODULES):
        return
    logger.debug(msg, extra={"context": _with_run_context(context)})


def log_info(logger: Logger, msg: str, **context):
    logger.info(msg, extra={"context": _with_run_context(context)})


def log_warn(logger: Logger, msg: str, **context):
    logger.warning(msg, extra={"context": _with_run_context(context)})


def log_error(logger: Logger, msg: str, **context):
    logger.error(msg, extra={"context": _with_run_context(context)})


def log_exception(logger: Logger, msg: str, **context):
    logger.exception(msg, extra={"context": _with_run_context(context)})


def log_operation_trace(logger: Logger, msg: str, **context):
    """Operation lifecycle event, routed to the operation_trace artifact sink."""
    logger.info(
        msg,
        extra={"context": _with_run_context(context), "category": "operation_trace"},
    )


def log_pool_refresh(logger: Logger, msg: str, **context):
    """Pool snapshot refresh event, routed to the pool_refresh artifact sink."""
    logger.info(
        msg,
        extra={"context": _with_run_context(context), "category": "pool_refresh"},
    )
