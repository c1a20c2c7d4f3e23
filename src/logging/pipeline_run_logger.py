"""Per-run stage tracking on top of ``AgentLogger``.

The orchestrator opens a stage around every graph node
(:meth:`PipelineRunLogger.start_stage` / :meth:`end_stage`).  Nodes report
notable outcomes with :meth:`event`, which is filed under the running
stage's :class:`LogComponent`: a stale or curated-only pool, fallback
concepts, buzzwords, validation counts.  The warnings of a run end up in
the result's debug block, and the stage table in failure notifications.
"""

from typing import Any, Dict, List, Optional

from src.logging.agent_logger import AgentLogger, get_logger
from src.logging.models import LogComponent, LogLevel, component_for_stage
from src.utils import utc_now


class PipelineRunLogger:
    """Stage timings and stage events of one pipeline run.

    Parameters:
        run_id: Identifier of the run; set as the logger context.
        logger: Structured logger.  Defaults to the process-wide one.
        company_id: Company the run is for.
    """

    def __init__(
        self,
        run_id: str,
        logger: Optional[AgentLogger] = None,
        company_id: Optional[str] = None,
    ) -> None:
        self.run_id = run_id
        self.logger = logger or get_logger()
        self.logger.set_context(run_id=run_id, company_id=company_id)

        self.start_time = utc_now()
        self.stages: List[Dict[str, Any]] = []
        self.current_stage: Optional[str] = None

    @property
    def component(self) -> LogComponent:
        return component_for_stage(self.current_stage)

    async def start_stage(self, stage: str) -> None:
        self.current_stage = stage
        self.stages.append(
            {"stage": stage, "start": utc_now(), "end": None,
             "status": "running", "duration_ms": None, "data": None}
        )
        await self.logger.debug(self.component, f"{stage} started")

    async def end_stage(
        self,
        status: str = "success",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Close the running stage (no-op when none was started).

        Args:
            status: ``"success"`` or ``"failed"``.
            data: Optional stage metrics.
        """
        if not self.stages:
            return

        stage = self.stages[-1]
        stage["end"] = utc_now()
        stage["status"] = status
        stage["duration_ms"] = int((stage["end"] - stage["start"]).total_seconds() * 1000)
        stage["data"] = data

        level = LogLevel.INFO if status == "success" else LogLevel.ERROR
        await self.logger.log(
            level,
            self.component,
            f"{stage['stage']} {status}",
            data=data,
            duration_ms=stage["duration_ms"],
        )

    async def event(
        self,
        message: str,
        level: LogLevel = LogLevel.INFO,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a stage outcome under the running stage's component."""
        await self.logger.log(level, self.component, message, data=data)

    def warnings(self) -> List[str]:
        """``"<component>: <message>"`` for every warning or worse of this run."""
        return [
            f"{entry.component.value}: {entry.message}"
            for entry in self.logger.run_entries(self.run_id, min_level=LogLevel.WARNING)
        ]

    def stage_timings(self) -> Dict[str, int]:
        """Milliseconds per stage name; repeated stages are summed."""
        timings: Dict[str, int] = {}
        for s in self.stages:
            timings[s["stage"]] = timings.get(s["stage"], 0) + (s["duration_ms"] or 0)
        return timings

    async def finish(self, status: str = "success") -> Dict[str, Any]:
        """Log the run summary, clear the logger context and return the summary."""
        end_time = utc_now()
        total_ms = int((end_time - self.start_time).total_seconds() * 1000)
        summary: Dict[str, Any] = {
            "run_id": self.run_id,
            "status": status,
            "start_time": self.start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "total_duration_ms": total_ms,
            "stages": [
                {
                    "stage": s["stage"],
                    "start": s["start"].isoformat(),
                    "end": s["end"].isoformat() if s["end"] else None,
                    "status": s["status"],
                    "duration_ms": s["duration_ms"],
                    "data": s["data"],
                }
                for s in self.stages
            ],
        }

        await self.logger.log(
            LogLevel.INFO if status != "failed" else LogLevel.ERROR,
            LogComponent.ORCHESTRATOR,
            f"Run {status}",
            data=summary,
            duration_ms=total_ms,
        )
        self.current_stage = None
        self.logger.clear_context()
        return summary

    def get_summary_text(self) -> str:
        """Stage table for chat notifications."""
        lines: List[str] = [f"Run {self.run_id}"]
        for stage in self.stages:
            marker = "[OK]" if stage["status"] == "success" else f"[{stage['status'].upper()}]"
            lines.append(f"{marker} {stage['stage']}: {stage.get('duration_ms') or 0}ms")
        total = sum(s.get("duration_ms") or 0 for s in self.stages)
        lines.append(f"Total: {total}ms")
        return "\n".join(lines)
