"""
CLIP tagging engine: scores candidate tag phrases against an image.
"""

import asyncio
import io
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union
from PIL import Image
import numpy as np
from .artifacts import ArtifactStore, get_artifact_store, model_artifact, tokenizer_artifact
from .config import settings
from .hierarchy import expand_tags
from .logging import get_logger
from .models import ArtifactDescriptor, TaggingResult
from .performance_monitor import performance_monitor
from .postprocessing import extract_color_tags, select_top_tags, softmax
from .preprocessing import preprocess_image
from .progress import ProgressReporter, ProgressSink, SyntheticProgress
from .session import InferenceSession, get_or_create
from .tokenizer import BpeTokenizer
from .vocabulary import CandidateVocabulary, get_candidate_vocabulary


class BaseTaggingEngine:
    """Base class for tagging engines."""

    def __init__(self):
        self.logger = get_logger("tagging_engine")

    def generate_tags(self, image: Image.Image, on_progress: Optional[ProgressSink] = None) -> List[str]:
        """Tag a decoded image. Must be implemented by subclasses."""
        raise NotImplementedError

    def tag_image_bytes(self, image_data: bytes, on_progress: Optional[ProgressSink] = None) -> List[str]:
        """Decode encoded image bytes and tag them."""
        with Image.open(io.BytesIO(image_data)) as image:
            return self.generate_tags(image.convert("RGB"), on_progress)

    def tag_image_file(self, path: Union[str, Path], on_progress: Optional[ProgressSink] = None) -> List[str]:
        """Open an image file and tag it."""
        with Image.open(path) as image:
            return self.generate_tags(image.convert("RGB"), on_progress)

    async def generate_tags_async(
        self,
        image: Image.Image,
        on_progress: Optional[ProgressSink] = None,
    ) -> List[str]:
        """Run :meth:`generate_tags` on a worker thread."""
        return await asyncio.to_thread(self.generate_tags, image, on_progress)


class ClipTaggingEngine(BaseTaggingEngine):
    """Zero-shot tagging against an open candidate vocabulary with a CLIP ONNX model.

    Candidate vocabulary, tokenized candidates and the inference session are
    loaded on first use and shared by every later call. Each cache has its
    own lock, so a model download never blocks tokenization and vice versa.
    """

    def __init__(
        self,
        store: Optional[ArtifactStore] = None,
        vocabulary: Optional[CandidateVocabulary] = None,
        model_descriptor: Optional[ArtifactDescriptor] = None,
        tokenizer_descriptor: Optional[ArtifactDescriptor] = None,
        session_factory: Callable[[Path], InferenceSession] = get_or_create,
    ):
        super().__init__()
        self.store = store or get_artifact_store()
        self.model_descriptor = model_descriptor or model_artifact()
        self.tokenizer_descriptor = tokenizer_descriptor or tokenizer_artifact()
        self._session_factory = session_factory

        self._vocabulary = vocabulary
        self._vocabulary_lock = threading.Lock()

        self._session: Optional[InferenceSession] = None
        self._session_lock = threading.Lock()

        self._tokenizer: Optional[BpeTokenizer] = None
        self._tokenized: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self._tokenizer_lock = threading.Lock()

    def ensure_candidates(self) -> CandidateVocabulary:
        vocabulary = self._vocabulary
        if vocabulary is not None:
            return vocabulary
        with self._vocabulary_lock:
            if self._vocabulary is None:
                self._vocabulary = get_candidate_vocabulary()
            return self._vocabulary

    def ensure_session(self, on_progress: Optional[Callable[[Optional[float]], None]] = None) -> InferenceSession:
        session = self._session
        if session is not None:
            return session
        with self._session_lock:
            if self._session is None:
                model_path = self.store.ensure(self.model_descriptor, on_progress)
                self._session = self._session_factory(model_path)
            return self._session

    def ensure_tokenizer(self, on_progress: Optional[Callable[[Optional[float]], None]] = None) -> BpeTokenizer:
        if self._tokenizer is None:
            tokenizer_path = self.store.ensure(self.tokenizer_descriptor, on_progress)
            self._tokenizer = BpeTokenizer.from_file(tokenizer_path)
        return self._tokenizer

    def ensure_tokenized_candidates(
        self,
        candidates: CandidateVocabulary,
        on_progress: Optional[Callable[[Optional[float]], None]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Token ids and attention masks for every candidate, ``[N, max_tokens]`` each."""
        tokenized = self._tokenized
        if tokenized is not None:
            performance_monitor.record_cache_hit()
            return tokenized

        with self._tokenizer_lock:
            if self._tokenized is not None:
                performance_monitor.record_cache_hit()
                return self._tokenized

            tokenizer = self.ensure_tokenizer(on_progress)
            skipped_before = tokenizer.skipped_tokens
            ids, mask = tokenizer.encode_batch(candidates.candidates, settings.max_tokens, on_progress)
            skipped = tokenizer.skipped_tokens - skipped_before
            if skipped:
                self.logger.warning(
                    f"⚠️  {skipped} sub-tokens missing from the tokenizer vocabulary were skipped"
                )
            self._tokenized = (ids, mask)
            performance_monitor.record_cache_miss()
            self.logger.info(f"🔤 Tokenized {len(candidates)} candidate tags")
            return self._tokenized

    def generate_tags(self, image: Image.Image, on_progress: Optional[ProgressSink] = None) -> List[str]:
        return self.generate_tags_detailed(image, on_progress).tags

    def generate_tags_detailed(
        self,
        image: Image.Image,
        on_progress: Optional[ProgressSink] = None,
    ) -> TaggingResult:
        """Tag an image: model tags, then color tags, then hierarchy ancestors.

        Any artifact, tokenizer or inference failure propagates; no partial
        result is returned.
        """
        start_time = time.time()
        progress = ProgressReporter(on_progress)

        progress.report(0.02)
        candidates = self.ensure_candidates()
        progress.report(0.06)

        session = self.ensure_session(progress.sub_range(0.06, 0.48))
        progress.report(0.50)

        ids, mask = self.ensure_tokenized_candidates(candidates, progress.sub_range(0.50, 0.72))
        progress.report(0.74)

        image_tensor = preprocess_image(image, settings.image_size)
        progress.report(0.80)

        names = session.resolve_inputs()
        inputs = {
            names.ids_name: ids,
            names.mask_name: mask,
            names.image_name: image_tensor,
        }

        with SyntheticProgress(progress, start=0.80):
            inference_start = time.time()
            logits = session.run(inputs, num_candidates=len(candidates))
            performance_monitor.record_inference(time.time() - inference_start)

        probs = softmax(logits)
        progress.report(0.985)

        predictions = select_top_tags(
            probs,
            candidates.candidates,
            threshold=settings.probability_threshold,
            top_k=settings.max_model_tags,
        )
        primary = [p.name for p in predictions]
        tags = list(dict.fromkeys(primary))

        color_tags = [c for c in extract_color_tags(image, settings.max_color_tags) if c not in tags]
        tags.extend(color_tags)

        hierarchy_tags = expand_tags(primary, exclude=tags)
        tags.extend(hierarchy_tags)

        processing_time = time.time() - start_time
        self.logger.debug(
            f"🏷️  Generated {len(tags)} tags in {processing_time:.2f}s: {', '.join(tags)}"
        )
        progress.report(1.0)

        return TaggingResult(
            tags=tags,
            predictions=predictions,
            color_tags=color_tags,
            hierarchy_tags=hierarchy_tags,
            processing_time=processing_time,
        )


_engine: Optional[ClipTaggingEngine] = None
_engine_lock = threading.Lock()


def get_tagging_engine() -> ClipTaggingEngine:
    """Return the process-wide tagging engine, creating it on first use."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = ClipTaggingEngine()
    return _engine
