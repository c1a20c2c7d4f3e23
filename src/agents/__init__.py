"""Stage implementations for the trend-fusion idea pipeline."""

from src.agents.signal_fetcher import SignalFetcher
from src.agents.concept_extractor import ConceptExtractor
from src.agents.concept_cache import ConceptCache
from src.agents.trend_pool import TrendPoolBuilder
from src.agents.company_profiler import CompanyProfiler
from src.agents.concept_matcher import ConceptMatcher
from src.agents.gap_analyzer import GapAnalyzer
from src.agents.idea_generator import IdeaGenerator
from src.agents.idea_validator import IdeaValidator
from src.agents.attempt_loop import AttemptTracker

__all__ = [
    "SignalFetcher",
    "ConceptExtractor",
    "ConceptCache",
    "TrendPoolBuilder",
    "CompanyProfiler",
    "ConceptMatcher",
    "GapAnalyzer",
    "IdeaGenerator",
    "IdeaValidator",
    "AttemptTracker",
]
