"""
Candidate tag vocabulary loaded from a newline-delimited asset.
"""

import threading
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union
from .logging import get_logger

logger = get_logger("vocabulary")

DEFAULT_CANDIDATES_PATH = Path(__file__).parent / "assets" / "clip_candidates.txt"


class CandidateVocabulary:
    """Ordered, de-duplicated tag phrases.

    The position of each phrase is the row index of its token ids in the text
    tensor and of its logit in the model output.
    """

    def __init__(self, candidates: Iterable[str]):
        seen = set()
        ordered: List[str] = []
        for line in candidates:
            tag = line.strip()
            if not tag or tag in seen:
                continue
            seen.add(tag)
            ordered.append(tag)
        self._candidates: Tuple[str, ...] = tuple(ordered)

    @classmethod
    def from_text(cls, text: str) -> "CandidateVocabulary":
        return cls(text.splitlines())

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "CandidateVocabulary":
        """Load candidates from a UTF-8 file, one phrase per line."""
        path = Path(path)
        vocabulary = cls.from_text(path.read_text(encoding="utf-8"))
        logger.debug(f"📋 Loaded {len(vocabulary)} candidate tags from {path.name}")
        return vocabulary

    @property
    def candidates(self) -> Tuple[str, ...]:
        return self._candidates

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[str]:
        return iter(self._candidates)

    def __getitem__(self, index: int) -> str:
        return self._candidates[index]

    def __contains__(self, tag: object) -> bool:
        return tag in self._candidates


_vocabulary: Optional[CandidateVocabulary] = None
_vocabulary_lock = threading.Lock()


def get_candidate_vocabulary(path: Optional[Union[str, Path]] = None) -> CandidateVocabulary:
    """Return the process-wide candidate vocabulary, loading it on first use."""
    global _vocabulary
    vocabulary = _vocabulary
    if vocabulary is not None:
        return vocabulary
    with _vocabulary_lock:
        if _vocabulary is None:
            _vocabulary = CandidateVocabulary.from_file(path or DEFAULT_CANDIDATES_PATH)
        return _vocabulary
