"""
Logging configuration for the CLIP Auto-Tagger.
"""

import logging
from typing import Any, Dict, Optional
from rich.console import Console
from rich.logging import RichHandler
from .config import settings


def setup_logging(level: Optional[str] = None) -> None:
    """Configure clean, simple logging output."""

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, (level or settings.log_level).upper()),
        handlers=[RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
            show_level=False,
            markup=True
        )],
        force=True  # Override any existing configuration
    )

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("onnxruntime").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def get_logger(name: str):
    """Get a standard logger instance."""
    return logging.getLogger(f"clip_tagger.{name}")


class MetricsLogger:
    """Logger for tracking tagging metrics."""

    def __init__(self):
        self.logger = get_logger("metrics")
        self.metrics: Dict[str, Any] = {
            "images_tagged": 0,
            "tags_produced": 0,
            "failures": 0,
            "processing_time": 0.0,
        }

    def log_image_tagged(self, image_id: str, tags_count: int, processing_time: float) -> None:
        """Log a successfully tagged image."""
        self.metrics["images_tagged"] += 1
        self.metrics["tags_produced"] += tags_count
        self.metrics["processing_time"] += processing_time

        # Only log individual images at DEBUG level to avoid spam
        self.logger.debug(
            f"Image tagged: {image_id} | Tags: {tags_count} | Time: {processing_time:.3f}s | "
            f"Total: {self.metrics['images_tagged']} images, {self.metrics['tags_produced']} tags"
        )

    def log_image_failure(self, image_id: str, error: str) -> None:
        """Log a failed tagging attempt."""
        self.metrics["failures"] += 1
        self.logger.warning(f"Tagging failed: {image_id} | Error: {error}")

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics."""
        return self.metrics.copy()
