"""
Best-effort run state file.

The file only exists for operators inspecting an interrupted run; re-runs
never read it back.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from coldstore.core.logging_config import LogCategory
from coldstore.core.time_utils import utc_now
from coldstore.schemas.migration import RunPhase

logger = logging.getLogger(LogCategory.STATE)


class StateRecorder:
    """Overwrites a single JSON state record on every call."""

    def __init__(self, path: Optional[str | Path]):
        self.path = Path(path) if path else None
        self.last_state: Optional[Dict[str, Any]] = None

    def record(self, phase: RunPhase, **counters: Any) -> None:
        """Write ``{phase, ...counters, timestamp}``. Never raises."""
        state = {
            "phase": RunPhase(phase).value,
            **counters,
            "timestamp": utc_now().isoformat(),
        }
        self.last_state = state

        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(state, indent=2, default=str))
        except (OSError, TypeError, ValueError) as e:
            logger.debug("State write failed for %s: %s", self.path, e)
