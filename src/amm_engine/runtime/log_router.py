import logging
import json
from pathlib import Path
from typing import Any

from amm_engine.utils.logger import safe_jsonable


# ---------------------------------------------------------------------
# Base class: artifact-grade log sink
# ---------------------------------------------------------------------

class ArtifactFileHandler(logging.Handler):
    """
    JSONL sink for one log category.
    Subclasses set `category`; records of any other category are ignored.
    """

    category: str  # must be overridden

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(record, "category", None) != self.category:
            return

        event: dict[str, Any] = {
            "ts": record.created,          # numeric ts for replay
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
            "context": safe_jsonable(getattr(record, "context", None) or {}),
        }

        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False) + "\n")
        except OSError:
            self.handleError(record)


# ---------------------------------------------------------------------
# Concrete handlers
# ---------------------------------------------------------------------

class OperationFileHandler(ArtifactFileHandler):
    """
    Stores operation_trace events (submissions, transitions, step outcomes).
    """
    category = "operation_trace"

    def __init__(self, run_id: str, base_dir: str = "artifacts/runs"):
        super().__init__(Path(base_dir) / run_id / "operations" / "operations.jsonl")


class RefreshFileHandler(ArtifactFileHandler):
    """
    Stores pool_refresh events (one per applied snapshot).
    """
    category = "pool_refresh"

    def __init__(self, run_id: str, base_dir: str = "artifacts/runs"):
        super().__init__(Path(base_dir) / run_id / "refresh" / "refresh.jsonl")


# ---------------------------------------------------------------------
# Wiring helper
# ---------------------------------------------------------------------

def attach_artifact_handlers(
    logger: logging.Logger,
    *,
    run_id: str,
    operations: bool = True,
    refresh: bool = False,
    base_dir: str = "artifacts/runs",
) -> list[ArtifactFileHandler]:
    """
    Attach artifact handlers to a logger at runtime.
    Call once during bootstrap; returns the handlers so callers can detach them.
    """
    handlers: list[ArtifactFileHandler] = []

    if operations:
        handlers.append(OperationFileHandler(run_id, base_dir=base_dir))

    if refresh:
        handlers.append(RefreshFileHandler(run_id, base_dir=base_dir))

    for handler in handlers:
        logger.addHandler(handler)
    return handlers
