"""
Performance monitoring utilities for the CLIP Auto-Tagger.
"""

import threading
import time
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from .logging import get_logger


@dataclass
class PerformanceMetrics:
    """Performance metrics tracking."""

    # Artifact downloads
    downloads_completed: int = 0
    bytes_downloaded: int = 0
    total_download_time: float = 0.0

    # Tokenization cache
    tokenization_cache_hits: int = 0
    tokenization_cache_misses: int = 0

    # Inference
    inference_calls: int = 0
    inference_times: List[float] = field(default_factory=list)

    # Image processing
    images_processed: int = 0
    total_processing_time: float = 0.0
    average_processing_time: Optional[float] = None

    # Batch processing
    batches_processed: int = 0
    total_batch_time: float = 0.0
    average_batch_time: Optional[float] = None

    def update_averages(self):
        """Update calculated averages."""
        if self.images_processed > 0:
            self.average_processing_time = self.total_processing_time / self.images_processed

        if self.batches_processed > 0:
            self.average_batch_time = self.total_batch_time / self.batches_processed

    def get_cache_hit_rate(self) -> float:
        """Calculate tokenization cache hit rate as a percentage."""
        total_requests = self.tokenization_cache_hits + self.tokenization_cache_misses
        if total_requests == 0:
            return 0.0
        return (self.tokenization_cache_hits / total_requests) * 100

    def get_average_inference_time(self) -> float:
        if not self.inference_times:
            return 0.0
        return sum(self.inference_times) / len(self.inference_times)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for logging."""
        self.update_averages()
        return {
            "downloads_completed": self.downloads_completed,
            "megabytes_downloaded": round(self.bytes_downloaded / 1_048_576, 2),
            "cache_hit_rate_percent": round(self.get_cache_hit_rate(), 2),
            "inference_calls": self.inference_calls,
            "average_inference_time": round(self.get_average_inference_time(), 3),
            "images_processed": self.images_processed,
            "average_processing_time": round(self.average_processing_time or 0, 3),
            "batches_processed": self.batches_processed,
            "average_batch_time": round(self.average_batch_time or 0, 3),
        }


class PerformanceMonitor:
    """Performance monitoring and metrics collection."""

    def __init__(self):
        self.logger = get_logger("performance")
        self.metrics = PerformanceMetrics()
        self.start_time = time.time()
        self._lock = threading.Lock()

    def record_download(self, size_bytes: int, download_time: float):
        """Record a completed artifact download."""
        with self._lock:
            self.metrics.downloads_completed += 1
            self.metrics.bytes_downloaded += size_bytes
            self.metrics.total_download_time += download_time

    def record_cache_hit(self):
        """Record reuse of the tokenized candidate tensors."""
        with self._lock:
            self.metrics.tokenization_cache_hits += 1

    def record_cache_miss(self):
        """Record a full tokenization of the candidate vocabulary."""
        with self._lock:
            self.metrics.tokenization_cache_misses += 1

    def record_inference(self, inference_time: float):
        """Record one model invocation."""
        with self._lock:
            self.metrics.inference_calls += 1
            self.metrics.inference_times.append(inference_time)

    def record_image_processed(self, processing_time: float):
        """Record image tagging completion."""
        with self._lock:
            self.metrics.images_processed += 1
            self.metrics.total_processing_time += processing_time

    def record_batch_processed(self, batch_time: float):
        """Record batch processing completion."""
        with self._lock:
            self.metrics.batches_processed += 1
            self.metrics.total_batch_time += batch_time

    def get_runtime_seconds(self) -> float:
        """Get total runtime in seconds."""
        return time.time() - self.start_time

    def log_performance_summary(self):
        """Log a summary of performance metrics."""
        runtime = self.get_runtime_seconds()
        metrics_dict = self.metrics.to_dict()

        self.logger.info(
            f"📈 Performance Summary: Runtime {runtime:.1f}s, "
            f"Inference calls {metrics_dict['inference_calls']} "
            f"(avg {metrics_dict['average_inference_time']:.3f}s), "
            f"Token cache hit rate {metrics_dict['cache_hit_rate_percent']:.1f}%"
        )

        if self.metrics.images_processed > 0:
            images_per_second = self.metrics.images_processed / runtime if runtime > 0 else 0
            self.logger.info(
                f"🎯 Throughput: {images_per_second:.2f} images/sec, "
                f"{metrics_dict['average_processing_time']:.3f}s per image"
            )

    def get_metrics_dict(self) -> Dict[str, Any]:
        """Get all metrics as a dictionary."""
        runtime = self.get_runtime_seconds()
        metrics_dict = self.metrics.to_dict()
        metrics_dict["runtime_seconds"] = round(runtime, 2)
        return metrics_dict


# Global performance monitor instance
performance_monitor = PerformanceMonitor()
