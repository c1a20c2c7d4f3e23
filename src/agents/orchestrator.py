"""
LangGraph Orchestrator -- state machine for the trend-fusion idea pipeline.

Ties the stages (trend pool, company profile, concept matching, content
gaps, idea generation, idea validation) together in a directed graph with
error-aware routing, timeout enforcement and a bounded regeneration loop.

Flow
----
build_trend_pool -> profile_company -> match_concepts -> analyze_gaps
    -> generate_ideas -> validate_ideas -> (generate_ideas | finalize)
    -> END

Key design decisions
--------------------
- **Pure nodes**: Every node returns a partial state dict.
- **Error routing**: ``@with_error_handling`` converts exceptions to
  ``{"critical_error": ...}`` and every edge checks for that key.
- **Timeouts**: ``@with_timeout`` wraps every stage node except
  ``build_trend_pool``, whose timeout bounds the concept refresh instead
  (a slow refresh degrades to a stale or curated-only pool).  Values come
  from ``Settings.node_timeouts`` (``NODE_TIMEOUT_<NAME>`` env overrides).
- **Injected clients**: the generative client, concept cache and sinks are
  passed to :class:`FusionPipeline`; nothing is a process-wide singleton.
- **Best attempt wins**: the regeneration loop is driven by
  :class:`~src.agents.attempt_loop.AttemptTracker`.

Error philosophy: trend sources and concept extraction degrade (stale or
curated-only pool); failures of profile, matching, gaps, generation or
validation fail the run with ``PipelineStageError``.  Sink failures
(database, Telegram) are logged and never fail a run.
"""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, List, Optional

from langgraph.graph import END, StateGraph

from src.agents.attempt_loop import AttemptTracker, count_concept_tutorials
from src.agents.company_profiler import CompanyProfiler
from src.agents.concept_cache import ConceptCache
from src.agents.concept_extractor import ConceptExtractor
from src.agents.concept_matcher import ConceptMatcher
from src.agents.gap_analyzer import GapAnalyzer
from src.agents.idea_generator import IdeaGenerator, find_buzzwords
from src.agents.idea_validator import IdeaValidator
from src.agents.signal_fetcher import create_signal_fetcher
from src.agents.trend_pool import TrendPoolBuilder
from src.config import Settings, get_settings
from src.cost_tracker import build_cost_record
from src.exceptions import NodeTimeoutError, PipelineStageError
from src.logging.agent_logger import AgentLogger
from src.logging.models import LogLevel
from src.logging.pipeline_run_logger import PipelineRunLogger
from src.models import (
    CompanyProfile,
    IdeaRequest,
    PipelineResult,
    PipelineState,
    StageCosts,
)
from src.tools.claude_client import ClaudeClient, get_claude
from src.utils import generate_id, utc_now

logger = logging.getLogger("Orchestrator")

DEFAULT_NODE_TIMEOUT = 60

NodeFunc = Callable[[PipelineState], Awaitable[Dict[str, Any]]]


# =============================================================================
# DECORATORS
# =============================================================================


def with_error_handling(node_name: Optional[str] = None):
    """Convert unhandled node exceptions into ``critical_error`` state updates.

    The LangGraph conditional edges check ``state.get("critical_error")`` and
    route to ``handle_error`` when present.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            name = node_name or func.__name__
            node_logger = logging.getLogger(f"Node.{name}")
            try:
                return await func(*args, **kwargs)
            except Exception as exc:
                error_msg = f"{type(exc).__name__}: {exc}"
                node_logger.error(
                    "[%s] Exception caught, routing to error handler: %s",
                    name,
                    error_msg,
                )
                return {
                    "critical_error": error_msg,
                    "error_stage": name,
                }

        return wrapper

    return decorator


def with_timeout(timeout_seconds: Optional[int] = None, node_name: Optional[str] = None):
    """Add an ``asyncio.wait_for`` timeout to an async node function.

    Raises:
        NodeTimeoutError: When the node runs longer than the timeout
            (``DEFAULT_NODE_TIMEOUT`` seconds when none is given).
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            actual = timeout_seconds or DEFAULT_NODE_TIMEOUT
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=actual)
            except asyncio.TimeoutError:
                raise NodeTimeoutError(node_name or func.__name__, actual)

        return wrapper

    return decorator


def with_stage_timing(node_name: str):
    """Record start/end of the node on the run's ``PipelineRunLogger``."""

    def decorator(func):
        @wraps(func)
        async def wrapper(state: PipelineState) -> Dict[str, Any]:
            run_logger: Optional[PipelineRunLogger] = state.get("run_logger")
            if run_logger is not None:
                await run_logger.start_stage(node_name)
            try:
                update = await func(state)
            except Exception:
                if run_logger is not None:
                    await run_logger.end_stage("failed")
                raise
            if run_logger is not None:
                await run_logger.end_stage("success")
            return update

        return wrapper

    return decorator


# =============================================================================
# ROUTING
# =============================================================================


def make_error_aware_router(next_node: str):
    """Return ``handle_error`` if ``critical_error`` is set, else *next_node*."""

    def router(state: PipelineState) -> str:
        if state.get("critical_error"):
            return "handle_error"
        return next_node

    return router


def route_after_validation(state: PipelineState) -> str:
    """Loop back to generation while the attempt budget allows and quality is short."""
    if state.get("critical_error"):
        return "handle_error"
    tracker: AttemptTracker = state["tracker"]
    if tracker.should_continue():
        return "generate_ideas"
    return "finalize"


# =============================================================================
# PIPELINE STATE INITIALISATION
# =============================================================================


def initialize_pipeline_state(
    run_id: str,
    request: IdeaRequest,
    tracker: AttemptTracker,
    run_logger: Optional[PipelineRunLogger] = None,
    profile: Optional[CompanyProfile] = None,
) -> PipelineState:
    """Create a fully-defaulted ``PipelineState`` for a new pipeline run."""
    return PipelineState(
        # Run tracking
        run_id=run_id,
        run_timestamp=utc_now(),
        stage="initialized",
        request=request,
        run_logger=run_logger,
        # Stage outputs
        trend_pool=None,
        company_profile=profile,
        match_outcome=None,
        content_gaps=[],
        # Attempt loop
        attempt=0,
        tracker=tracker,
        current_ideas=[],
        rejection_summary=None,
        generation_debug=[],
        validation_debug=[],
        # Costs / result
        costs=StageCosts(),
        result=None,
        # Error handling
        critical_error=None,
        error_stage=None,
    )


# =============================================================================
# PIPELINE
# =============================================================================


class FusionPipeline:
    """
    The trend-fusion idea pipeline.

    Args:
        claude: Generative client shared by every stage.
        cache: Concept cache for dynamic trend concepts (``None`` builds a
            curated-only pool).
        settings: Thresholds, models and node timeouts.
        db: Optional sink for run, cost and error records.
        notifier: Optional chat notifier (``TelegramNotifier``).
        agent_logger: Structured logger for stage timings.  Defaults to an
            ``AgentLogger`` writing to ``settings.log_dir``.

    Usage::

        pipeline = FusionPipeline(claude=claude, cache=cache)
        result = await pipeline.run(IdeaRequest(
            company_id="acme", company_name="Acme", website="https://acme.dev",
        ))
        for idea in result.ideas:
            print(idea.title)
    """

    def __init__(
        self,
        claude: ClaudeClient,
        cache: Optional[ConceptCache] = None,
        settings: Optional[Settings] = None,
        db: Any = None,
        notifier: Any = None,
        agent_logger: Optional[AgentLogger] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.thresholds = self.settings.thresholds
        self.db = db
        self.notifier = notifier
        self.agent_logger = agent_logger or AgentLogger(log_dir=self.settings.log_dir)
        self.logger = logging.getLogger("Orchestrator")

        self.pool_builder = TrendPoolBuilder(
            cache,
            self.thresholds,
            max_age_hours=self.settings.cache_ttl_hours,
            refresh_timeout=self.settings.node_timeouts.get("build_trend_pool", DEFAULT_NODE_TIMEOUT),
        )
        self.profiler = CompanyProfiler(claude, self.thresholds)
        self.matcher = ConceptMatcher(claude, self.thresholds)
        self.gap_analyzer = GapAnalyzer(claude, self.thresholds)
        self.generator = IdeaGenerator(claude, self.thresholds)
        self.validator = IdeaValidator(
            claude, self.thresholds, model=self.settings.validation_model
        )

        self.graph = self._build_graph()

    # ------------------------------------------------------------------
    # Graph construction
    # ------------------------------------------------------------------

    def _node(self, name: str, func: NodeFunc, hard_timeout: bool = True) -> NodeFunc:
        if hard_timeout:
            timeout = self.settings.node_timeouts.get(name, DEFAULT_NODE_TIMEOUT)
            func = with_timeout(timeout, name)(func)
        return with_error_handling(name)(with_stage_timing(name)(func))

    def _build_graph(self) -> Any:
        """Build and compile the LangGraph state machine."""
        workflow = StateGraph(PipelineState)

        # ---- Add nodes ------------------------------------------------------
        # The pool node degrades on a slow refresh instead of timing out.
        workflow.add_node(
            "build_trend_pool",
            self._node("build_trend_pool", self.build_trend_pool_node, hard_timeout=False),
        )
        workflow.add_node("profile_company", self._node("profile_company", self.profile_company_node))
        workflow.add_node("match_concepts", self._node("match_concepts", self.match_concepts_node))
        workflow.add_node("analyze_gaps", self._node("analyze_gaps", self.analyze_gaps_node))
        workflow.add_node("generate_ideas", self._node("generate_ideas", self.generate_ideas_node))
        workflow.add_node("validate_ideas", self._node("validate_ideas", self.validate_ideas_node))
        workflow.add_node("finalize", with_error_handling("finalize")(self.finalize_node))
        workflow.add_node("handle_error", self.error_handler_node)

        # ---- Entry point ----------------------------------------------------
        workflow.set_entry_point("build_trend_pool")

        # ---- Main flow edges (each with error checking) ---------------------
        for current, following in (
            ("build_trend_pool", "profile_company"),
            ("profile_company", "match_concepts"),
            ("match_concepts", "analyze_gaps"),
            ("analyze_gaps", "generate_ideas"),
            ("generate_ideas", "validate_ideas"),
        ):
            workflow.add_conditional_edges(
                current,
                make_error_aware_router(following),
                {following: following, "handle_error": "handle_error"},
            )

        # validate_ideas -> (generate_ideas | finalize | handle_error)
        workflow.add_conditional_edges(
            "validate_ideas",
            route_after_validation,
            {
                "generate_ideas": "generate_ideas",
                "finalize": "finalize",
                "handle_error": "handle_error",
            },
        )

        workflow.add_conditional_edges(
            "finalize",
            make_error_aware_router(END),
            {END: END, "handle_error": "handle_error"},
        )

        # Error handler always terminates
        workflow.add_edge("handle_error", END)

        return workflow.compile()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    @staticmethod
    async def _stage_event(
        state: PipelineState,
        message: str,
        level: LogLevel = LogLevel.INFO,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        run_logger: Optional[PipelineRunLogger] = state.get("run_logger")
        if run_logger is not None:
            await run_logger.event(message, level=level, data=data)

    async def build_trend_pool_node(self, state: PipelineState) -> Dict[str, Any]:
        """Stage 0: curated + dynamic trend concepts."""
        pool = await self.pool_builder.build()
        costs: StageCosts = state["costs"]
        costs.stage0_trend_pool = pool.extraction_cost

        counts = {"curated": pool.curated_count, "dynamic": pool.dynamic_count}
        if pool.dynamic_extraction_failed:
            await self._stage_event(
                state, "No dynamic concepts available, pool is curated only",
                LogLevel.WARNING, counts,
            )
        elif pool.stale:
            await self._stage_event(
                state, "Concept refresh failed, using stale cached concepts",
                LogLevel.WARNING, counts,
            )
        else:
            await self._stage_event(state, f"Pool of {len(pool.concepts)} concepts", data=counts)
        return {"trend_pool": pool, "costs": costs, "stage": "trend_pool"}

    async def profile_company_node(self, state: PipelineState) -> Dict[str, Any]:
        """Stage 1: company profile (skipped when the caller supplied one)."""
        if state.get("company_profile") is not None:
            self.logger.info("[PIPELINE] Using caller-supplied company profile")
            return {"stage": "profile"}

        profile, cost = await self.profiler.profile(state["request"])
        costs: StageCosts = state["costs"]
        costs.stage1_profile = cost
        return {"company_profile": profile, "costs": costs, "stage": "profile"}

    async def match_concepts_node(self, state: PipelineState) -> Dict[str, Any]:
        """Stage 1.5: match pooled concepts to the company."""
        outcome = await self.matcher.match(
            state["company_profile"], state["trend_pool"].selected_for_matching
        )
        costs: StageCosts = state["costs"]
        costs.stage1_5_matching = outcome.cost
        if outcome.fallback_used:
            await self._stage_event(
                state,
                f"Only {len(outcome.matched) - outcome.fallback_injected_count} strict matches, "
                f"injected {outcome.fallback_injected_count} fallback concepts",
                LogLevel.WARNING,
                {"matched": [m.concept.name for m in outcome.matched]},
            )
        return {"match_outcome": outcome, "costs": costs, "stage": "matching"}

    async def analyze_gaps_node(self, state: PipelineState) -> Dict[str, Any]:
        """Stage 2: content gaps."""
        request: IdeaRequest = state["request"]
        summary = request.content_summary.content_summary if request.content_summary else None
        gaps, cost = await self.gap_analyzer.analyze(
            state["company_profile"], state["match_outcome"].matched, summary
        )
        costs: StageCosts = state["costs"]
        costs.stage2_gaps = cost
        return {"content_gaps": gaps, "costs": costs, "stage": "gaps"}

    async def generate_ideas_node(self, state: PipelineState) -> Dict[str, Any]:
        """Stage 3: one generation attempt, with feedback from the previous one."""
        tracker: AttemptTracker = state["tracker"]
        attempt = tracker.next_attempt
        rejection_summary = tracker.rejection_summary

        ideas, cost = await self.generator.generate(
            state["company_profile"],
            state.get("content_gaps", []),
            state["match_outcome"].matched,
            specific_requirements=state["request"].specific_requirements,
            attempt=attempt,
            rejection_summary=rejection_summary,
        )

        costs: StageCosts = state["costs"]
        costs.stage3_generation = costs.stage3_generation + cost
        for idea in ideas:
            buzzwords = find_buzzwords(idea)
            if buzzwords:
                await self._stage_event(
                    state,
                    f"Attempt {attempt}: '{idea.title}' uses blacklisted phrases",
                    LogLevel.WARNING,
                    {"buzzwords": buzzwords},
                )
        generation_debug = list(state.get("generation_debug", []))
        generation_debug.append(
            {
                "attempt": attempt,
                "generatedCount": len(ideas),
                "conceptTutorialCount": count_concept_tutorials(ideas),
                "cost": cost.total_cost,
                "rejectionSummaryUsed": rejection_summary,
            }
        )
        return {
            "attempt": attempt,
            "current_ideas": ideas,
            "rejection_summary": rejection_summary,
            "generation_debug": generation_debug,
            "costs": costs,
            "stage": "generation",
        }

    async def validate_ideas_node(self, state: PipelineState) -> Dict[str, Any]:
        """Stage 4: validate the current attempt and record it on the tracker."""
        tracker: AttemptTracker = state["tracker"]
        ideas = state.get("current_ideas", [])
        outcome = await self.validator.validate(state["company_profile"], ideas)
        snapshot = tracker.record(ideas, outcome)

        costs: StageCosts = state["costs"]
        costs.stage4_validation = costs.stage4_validation + outcome.cost
        await self._stage_event(
            state,
            f"Attempt {snapshot.attempt}: {outcome.valid_count} valid, {outcome.rejected_count} rejected",
            data={"topRejectionReasons": list(outcome.top_rejection_reasons)},
        )
        validation_debug = list(state.get("validation_debug", []))
        validation_debug.append(
            {
                "attempt": snapshot.attempt,
                "validCount": outcome.valid_count,
                "rejectedCount": outcome.rejected_count,
                "cost": outcome.cost.total_cost,
                "topRejectionReasons": list(outcome.top_rejection_reasons),
            }
        )
        self.logger.info(
            "[PIPELINE] Attempt %d: %d valid, %d concept tutorials",
            snapshot.attempt,
            snapshot.valid_count,
            snapshot.concept_tutorial_count,
        )
        return {
            "tracker": tracker,
            "validation_debug": validation_debug,
            "costs": costs,
            "stage": "validation",
        }

    async def finalize_node(self, state: PipelineState) -> Dict[str, Any]:
        """Assemble the ``PipelineResult`` from the best attempt."""
        tracker: AttemptTracker = state["tracker"]
        pool = state["trend_pool"]
        profile: CompanyProfile = state["company_profile"]
        outcome = state["match_outcome"]
        gaps = state.get("content_gaps", [])
        run_logger: Optional[PipelineRunLogger] = state.get("run_logger")

        degraded = tracker.degraded_mode
        if degraded:
            self.logger.warning(
                "[PIPELINE] Degraded result: best attempt had %d valid ideas",
                tracker.best.valid_count if tracker.best else 0,
            )

        debug: Dict[str, Any] = {
            "stage0": {
                "cached": pool.cached,
                "stale": pool.stale,
                "dynamicExtractionFailed": pool.dynamic_extraction_failed,
                "curatedCount": pool.curated_count,
                "dynamicCount": pool.dynamic_count,
                "mergedCount": len(pool.concepts),
                "selectedForMatching": len(pool.selected_for_matching),
            },
            "stage1": {
                "differentiatorsFound": len(profile.differentiators),
                "techStackCount": len(profile.tech_stack),
            },
            "stage1_5": {
                "rankedCandidates": len(outcome.ranked_candidates),
                "matchedCount": len(outcome.matched),
                "fallbackUsed": outcome.fallback_used,
                "fallbackInjectedCount": outcome.fallback_injected_count,
                "rejectedSample": list(outcome.rejected_sample),
            },
            "stage2": {
                "gapsFound": len(gaps),
                "topGapTopics": [g.topic for g in gaps[:4]],
            },
            "stage3Attempts": list(state.get("generation_debug", [])),
            "stage4Attempts": list(state.get("validation_debug", [])),
            "degradedMode": degraded,
            "stageTimings": run_logger.stage_timings() if run_logger else {},
            "warnings": run_logger.warnings() if run_logger else [],
        }

        result = PipelineResult(
            run_id=state["run_id"],
            success=True,
            ideas=tracker.final_ideas(),
            validation_results=tracker.best_results,
            company_profile=profile,
            content_gaps=gaps,
            matched_concepts=outcome.matched,
            trend_concepts_used=pool.selected_for_matching,
            debug=debug,
            cost_info=state["costs"],
            regeneration_attempts=tracker.attempts,
            rejected_count=tracker.rejected_count,
            degraded_mode=degraded,
        )
        return {"result": result, "stage": "complete"}

    async def error_handler_node(self, state: PipelineState) -> Dict[str, Any]:
        """Central error handler -- logs, persists the error, and terminates."""
        err_logger = logging.getLogger("PipelineErrorHandler")
        critical_error = state.get("critical_error", "Unknown error")
        error_stage = state.get("error_stage") or "unknown"
        request: Optional[IdeaRequest] = state.get("request")

        err_logger.error(
            "Pipeline failed at stage '%s' (last completed: %s): %s",
            error_stage,
            state.get("stage", "unknown"),
            critical_error,
        )

        if self.db is not None:
            try:
                await self.db.save_pipeline_error(
                    {
                        "run_id": state.get("run_id"),
                        "company_id": request.company_id if request else None,
                        "stage": error_stage,
                        "error": str(critical_error),
                        "last_completed_stage": state.get("stage"),
                        "created_at": utc_now().isoformat(),
                    }
                )
            except Exception as db_exc:
                err_logger.warning("Failed to save error to database: %s", db_exc)

        return {"stage": "error"}

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        request: IdeaRequest,
        profile: Optional[CompanyProfile] = None,
    ) -> PipelineResult:
        """
        Execute the pipeline for one company.

        Args:
            request: Company and optional enrichment / content summary.
            profile: Pre-computed profile; skips the profiling stage.

        Returns:
            The ``PipelineResult`` (``degraded_mode`` set when the quality
            gates were not fully met).

        Raises:
            PipelineStageError: If a pipeline-critical stage failed.
        """
        run_id = generate_id()
        run_logger = PipelineRunLogger(
            run_id, logger=self.agent_logger, company_id=request.company_id
        )
        initial_state = initialize_pipeline_state(
            run_id,
            request,
            AttemptTracker(self.thresholds),
            run_logger=run_logger,
            profile=profile,
        )

        self.logger.info(
            "[PIPELINE] Starting run %s for %s", run_id, request.company_name
        )
        final_state = await self.graph.ainvoke(initial_state)

        if final_state.get("critical_error"):
            await run_logger.finish("failed")
            stage = final_state.get("error_stage") or "unknown"
            await self._notify(
                f"Idea pipeline FAILED for {request.company_name}\n"
                f"Stage: {stage}\nError: {final_state['critical_error']}\n\n"
                f"{run_logger.get_summary_text()}"
            )
            raise PipelineStageError(stage, final_state["critical_error"], run_id=run_id)

        result: PipelineResult = final_state["result"]
        await run_logger.finish("degraded" if result.degraded_mode else "success")

        self.logger.info(
            "[PIPELINE] Run %s complete: %d ideas, %d attempts, cost $%.4f%s",
            run_id,
            len(result.ideas),
            result.regeneration_attempts,
            result.cost_info.total.total_cost,
            " [DEGRADED]" if result.degraded_mode else "",
        )

        await self._persist(result, request)
        await self._notify(format_run_summary(result, request))
        await self.agent_logger.flush()
        return result

    # ------------------------------------------------------------------
    # Sinks
    # ------------------------------------------------------------------

    async def _persist(self, result: PipelineResult, request: IdeaRequest) -> None:
        """Write the run record and cost record; failures are logged only."""
        if self.db is None:
            return

        record = result.to_dict()
        record.update(
            {
                "company_id": request.company_id,
                "company_name": request.company_name,
                "status": "degraded" if result.degraded_mode else "success",
                "created_at": utc_now().isoformat(),
            }
        )
        try:
            await self.db.save_pipeline_run(record)
        except Exception as exc:
            self.logger.warning("[PIPELINE] Failed to save run record: %s", exc)

        cost_record = build_cost_record(
            result.cost_info.total,
            company_name=request.company_name,
            website=request.website,
            operation_details={
                "company_id": request.company_id,
                "ideas_generated": len(result.ideas),
                "ideas_rejected": result.rejected_count,
                "regeneration_attempts": result.regeneration_attempts,
                "degraded_mode": result.degraded_mode,
            },
            run_id=result.run_id,
        )
        try:
            await self.db.save_api_cost(cost_record)
        except Exception as exc:
            self.logger.warning("[PIPELINE] Failed to save cost record: %s", exc)

    async def _notify(self, message: str) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.send(message)
        except Exception as exc:
            self.logger.warning("[PIPELINE] Failed to send notification: %s", exc)


def format_run_summary(result: PipelineResult, request: IdeaRequest) -> str:
    """Short plain-text summary of a finished run for chat notifications."""
    lines: List[str] = [
        f"New ideas for {request.company_name} ({request.website})",
        f"Ideas: {len(result.ideas)} | Attempts: {result.regeneration_attempts} | "
        f"Rejected: {result.rejected_count} | Cost: ${result.cost_info.total.total_cost:.4f}",
    ]
    if result.degraded_mode:
        lines.append("WARNING: degraded mode, quality gates not fully met")
    lines.append("")
    lines.extend(f"{i}. {idea.title}" for i, idea in enumerate(result.ideas, start=1))
    return "\n".join(lines)


# =============================================================================
# FACTORY FUNCTION
# =============================================================================


def create_concept_cache(
    claude: ClaudeClient,
    store: Any,
    settings: Optional[Settings] = None,
) -> ConceptCache:
    """Wire fetcher, extractor and cache from the settings."""
    settings = settings or get_settings()
    extractor = ConceptExtractor(
        claude,
        create_signal_fetcher(settings.sources),
        model=settings.extraction_model,
        signal_limit=settings.thresholds.signal_prompt_limit,
    )
    return ConceptCache(
        store=store,
        extractor=extractor,
        ttl_hours=settings.cache_ttl_hours,
        key=settings.cache_key,
    )


def create_fusion_pipeline(
    store: Any,
    settings: Optional[Settings] = None,
    claude: Optional[ClaudeClient] = None,
    db: Any = None,
    notifier: Any = None,
    agent_logger: Optional[AgentLogger] = None,
) -> FusionPipeline:
    """
    Build a :class:`FusionPipeline` with real clients.

    Args:
        store: Document store for the concept cache (``SupabaseDB`` or
            ``InMemoryDocumentStore``).
        settings: Defaults to the global settings.
        claude: Generative client; built from the settings when omitted.
        db: Optional run/cost/error sink.
        notifier: Optional chat notifier.
        agent_logger: Optional structured logger.
    """
    settings = settings or get_settings()
    claude = claude or get_claude(model=settings.llm_model)
    return FusionPipeline(
        claude=claude,
        cache=create_concept_cache(claude, store, settings),
        settings=settings,
        db=db,
        notifier=notifier,
        agent_logger=agent_logger,
    )


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    "DEFAULT_NODE_TIMEOUT",
    # Decorators
    "with_error_handling",
    "with_stage_timing",
    "with_timeout",
    # Routing
    "make_error_aware_router",
    "route_after_validation",
    # Pipeline
    "FusionPipeline",
    "create_concept_cache",
    "create_fusion_pipeline",
    "format_run_summary",
    "initialize_pipeline_state",
]
