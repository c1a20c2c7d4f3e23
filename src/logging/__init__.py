"""Structured logging for the trend-fusion pipeline."""
from src.logging.models import LogLevel, LogComponent, LogEntry
from src.logging.agent_logger import AgentLogger, init_logger, get_logger
from src.logging.pipeline_run_logger import PipelineRunLogger

__all__ = [
    "LogLevel", "LogComponent", "LogEntry",
    "AgentLogger", "init_logger", "get_logger",
    "PipelineRunLogger",
]
