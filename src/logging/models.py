"""Logging data models: LogLevel, LogComponent, LogEntry."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(Enum):
    """Log levels with numeric values for severity comparison.

    Integer values keep severity ordering correct; string comparison would
    not (``"debug" > "critical"`` lexicographically).
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @property
    def name_str(self) -> str:
        """Get lowercase name for display/serialization."""
        return self.name.lower()


class LogComponent(Enum):
    """Where a structured log entry came from: the graph itself or one of its stages."""

    ORCHESTRATOR = "orchestrator"
    TREND_POOL = "trend_pool"
    COMPANY_PROFILER = "company_profiler"
    CONCEPT_MATCHER = "concept_matcher"
    GAP_ANALYZER = "gap_analyzer"
    IDEA_GENERATOR = "idea_generator"
    IDEA_VALIDATOR = "idea_validator"


# Graph node name -> component its stage events are filed under
STAGE_COMPONENTS: Dict[str, LogComponent] = {
    "build_trend_pool": LogComponent.TREND_POOL,
    "profile_company": LogComponent.COMPANY_PROFILER,
    "match_concepts": LogComponent.CONCEPT_MATCHER,
    "analyze_gaps": LogComponent.GAP_ANALYZER,
    "generate_ideas": LogComponent.IDEA_GENERATOR,
    "validate_ideas": LogComponent.IDEA_VALIDATOR,
}


def component_for_stage(stage: Optional[str]) -> LogComponent:
    return STAGE_COMPONENTS.get(stage or "", LogComponent.ORCHESTRATOR)


@dataclass
class LogEntry:
    """Structured log entry.

    A single log event with run context, optional error details and
    timing.  Serializes to JSON (files), dict (database) and a short
    human-readable line (console / Telegram).
    """

    # Required fields
    timestamp: datetime
    level: LogLevel
    component: LogComponent
    message: str

    # Context
    run_id: Optional[str] = None
    company_id: Optional[str] = None

    # Additional data
    data: Dict[str, Any] = field(default_factory=dict)

    # Error details
    error_type: Optional[str] = None
    error_traceback: Optional[str] = None

    # Performance
    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for database insertion."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "level_name": self.level.name_str,
            "component": self.component.value,
            "message": self.message,
            "run_id": self.run_id,
            "company_id": self.company_id,
            "data": self.data,
            "error_type": self.error_type,
            "error_traceback": self.error_traceback,
            "duration_ms": self.duration_ms,
        }

    def to_json(self) -> str:
        """Serialize to a JSON line for file logging."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_readable(self) -> str:
        """Human-readable format for Telegram/console output."""
        time_str = self.timestamp.strftime("%H:%M:%S")
        level_indicators = {
            LogLevel.DEBUG: "[DEBUG]",
            LogLevel.INFO: "[INFO]",
            LogLevel.WARNING: "[WARN]",
            LogLevel.ERROR: "[ERROR]",
            LogLevel.CRITICAL: "[CRIT]",
        }
        indicator = level_indicators.get(self.level, "[???]")
        msg = f"{indicator} [{time_str}] [{self.component.value}] {self.message}"
        if self.duration_ms:
            msg += f" ({self.duration_ms}ms)"
        return msg
