"""
Batch processor for tagging image files.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Union
from .config import settings
from .logging import get_logger, MetricsLogger
from .models import BatchTaggingResult, ImageTaggingResult
from .performance_monitor import performance_monitor
from .progress import ProgressSink
from .tagging_engine import BaseTaggingEngine, get_tagging_engine


class BatchTagger:
    """Tags image files with a shared engine, one independent call per image."""

    def __init__(self, engine: Optional[BaseTaggingEngine] = None, max_workers: Optional[int] = None):
        self.logger = get_logger("processor")
        self.metrics = MetricsLogger()
        self.engine = engine or get_tagging_engine()
        self.max_workers = max_workers or settings.max_workers

    def process_image(
        self,
        path: Union[str, Path],
        on_progress: Optional[ProgressSink] = None,
    ) -> ImageTaggingResult:
        """Tag a single image file.

        A failure produces an unsuccessful result with no tags rather than
        raising, so one bad file never aborts a batch.
        """
        start_time = time.time()
        image_id = str(path)
        result = ImageTaggingResult(image_id=image_id, success=False)

        try:
            result.tags = self.engine.tag_image_file(path, on_progress)
            result.success = True
        except Exception as e:
            result.tags = []
            result.error = str(e)
            result.processing_time = time.time() - start_time
            self.metrics.log_image_failure(image_id, str(e))
            return result

        result.processing_time = time.time() - start_time
        self.metrics.log_image_tagged(image_id, len(result.tags), result.processing_time)
        performance_monitor.record_image_processed(result.processing_time)
        return result

    def process_batch(self, paths: Iterable[Union[str, Path]]) -> BatchTaggingResult:
        """Tag a batch of image files concurrently, preserving input order."""
        paths = list(paths)
        start_time = time.time()

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="tagger") as executor:
            results: List[ImageTaggingResult] = list(executor.map(self.process_image, paths))

        batch_time = time.time() - start_time
        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful
        total_tags = sum(len(r.tags) for r in results)

        batch_result = BatchTaggingResult(
            batch_size=len(paths),
            successful=successful,
            failed=failed,
            total_tags=total_tags,
            processing_time=batch_time,
            results=results,
        )

        performance_monitor.record_batch_processed(batch_time)

        rate_per_second = len(paths) / batch_time if batch_time > 0 else 0
        status_msg = f"📊 Batch: {successful} tagged"
        if failed > 0:
            status_msg += f", {failed} failed"
        self.logger.info(
            f"{status_msg} | "
            f"{total_tags} tags produced | "
            f"Rate: {rate_per_second:.1f}/sec"
        )

        return batch_result

    def get_metrics(self):
        """Get current processing metrics."""
        return {
            "basic_metrics": self.metrics.get_metrics(),
            "performance_metrics": performance_monitor.get_metrics_dict(),
        }
