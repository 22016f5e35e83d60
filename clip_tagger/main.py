"""
Main entry point for the CLIP Auto-Tagger command line tool.
"""

import argparse
import json
import sys
from typing import List, Optional
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from .artifacts import get_artifact_store, model_artifact, tokenizer_artifact
from .config import settings
from .exceptions import TaggerError
from .logging import setup_logging, get_logger
from .models import ImageTaggingResult
from .performance_monitor import performance_monitor
from .processor import BatchTagger


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="CLIP Auto-Tagger - zero-shot image tagging with a local CLIP model"
    )

    parser.add_argument(
        "images",
        nargs="*",
        metavar="IMAGE",
        help="Image files to tag"
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Show which model artifacts are cached and exit"
    )

    parser.add_argument(
        "--download-only",
        action="store_true",
        help="Download the model and tokenizer, then exit"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON"
    )

    parser.add_argument(
        "--workers",
        type=int,
        help="Override the number of concurrent workers from configuration"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the log level from configuration"
    )

    return parser.parse_args(argv)


def _progress_bar() -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=Console(stderr=True),
        transient=True,
    )


def show_status() -> int:
    """Log the cache state of each artifact."""
    logger = get_logger("main")
    store = get_artifact_store()
    descriptors = [model_artifact(), tokenizer_artifact()]
    logger.info(f"📁 Model cache: {store.root}")
    for status in store.status(descriptors):
        if status.present:
            size_mb = (status.size_bytes or 0) / 1_048_576
            logger.info(f"✅ {status.name}: {status.path} ({size_mb:.1f} MB)")
        else:
            logger.info(f"❌ {status.name}: missing ({status.path})")

    missing = store.missing(descriptors)
    if missing:
        logger.info(f"⬇️  {len(missing)} artifact(s) missing, run with --download-only to fetch them")
    return 0


def download_artifacts() -> int:
    """Ensure both artifacts are installed, showing a progress bar per download."""
    logger = get_logger("main")
    store = get_artifact_store()

    with _progress_bar() as progress:
        for descriptor in (model_artifact(), tokenizer_artifact()):
            task = progress.add_task(descriptor.label, total=1.0)

            def on_progress(fraction, task=task):
                if fraction is None:
                    progress.update(task, total=None)
                else:
                    progress.update(task, total=1.0, completed=fraction)

            path = store.ensure(descriptor, on_progress)
            progress.update(task, total=1.0, completed=1.0)
            logger.info(f"✅ {descriptor.label} ready at {path}")

    return 0


def tag_images(paths: List[str], workers: Optional[int] = None) -> List[ImageTaggingResult]:
    """Tag every image; a single image gets a live progress bar."""
    tagger = BatchTagger(max_workers=workers)

    if len(paths) == 1:
        with _progress_bar() as progress:
            task = progress.add_task("Tagging", total=1.0)
            result = tagger.process_image(
                paths[0],
                on_progress=lambda fraction: progress.update(task, completed=fraction),
            )
        return [result]

    return tagger.process_batch(paths).results


def print_results(results: List[ImageTaggingResult], as_json: bool = False) -> None:
    """Write results to stdout, one line per image or a JSON document."""
    if as_json:
        print(json.dumps([r.model_dump() for r in results], indent=2))
        return

    for result in results:
        if result.success:
            print(f"{result.image_id}: {', '.join(result.tags)}")
        else:
            print(f"{result.image_id}: error: {result.error}", file=sys.stderr)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_arguments(argv)

    # Setup logging
    setup_logging(args.log_level)
    logger = get_logger("main")

    if args.workers:
        settings.max_workers = args.workers
        logger.info(f"👷 Using {args.workers} workers")

    try:
        if args.status:
            return show_status()

        if args.download_only:
            return download_artifacts()

        if not args.images:
            logger.error("❌ No images given")
            return 1

        logger.info(f"🚀 Tagging {len(args.images)} image(s)")
        results = tag_images(args.images, args.workers)
        print_results(results, args.json)

        performance_monitor.log_performance_summary()

        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.error(f"❌ {failed} of {len(results)} image(s) failed")
            return 1
        return 0

    except TaggerError as e:
        logger.error(f"❌ {type(e).__name__}: {str(e)}")
        return 1
    except KeyboardInterrupt:
        logger.info("⏹️  Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
