"""Observability module for glyphcam.

Provides structured logging and frame pipeline statistics.

Example:
    from glyphcam.observability import get_logger, LogContext

    logger = get_logger(__name__)

    # Simple logging
    logger.info("Camera started")

    # Structured logging with context
    with LogContext(camera_index=0, operation="stop"):
        logger.warning("Hardware stop failed", attempt=1)

Statistics Example:
    from glyphcam.observability import FrameStats

    stats = FrameStats()
    stats.record_render(duration_ms=3.1)
    print(f"{stats.get_summary().render_fps:.1f} FPS")
"""

from glyphcam.observability.logging import (
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)
from glyphcam.observability.stats import (
    FrameStats,
    FrameStatsSummary,
)

__all__ = [
    # Logging
    "JSONFormatter",
    "LogContext",
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
    # Statistics
    "FrameStats",
    "FrameStatsSummary",
]
