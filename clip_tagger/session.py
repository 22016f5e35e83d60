"""
Process-wide ONNX Runtime session for the CLIP model.
"""

import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
import numpy as np
from .exceptions import UnexpectedOutputShapeError, UnresolvedInputsError
from .logging import get_logger
from .models import ResolvedInputs

logger = get_logger("session")

_CUDA_PROVIDER = "CUDAExecutionProvider"
_CPU_PROVIDER = "CPUExecutionProvider"


def resolve_input_names(input_names: Sequence[str]) -> ResolvedInputs:
    """Pick the ids, attention-mask and image inputs by name.

    Matching is a case-insensitive substring search with positional
    fallbacks, so exports that name their inputs ``input_ids`` /
    ``attention_mask`` / ``pixel_values`` or something close all resolve.
    A name is never given to more than one role.
    """
    names = list(dict.fromkeys(input_names))
    if len(names) < 3:
        raise UnresolvedInputsError(
            f"Model must declare at least 3 distinct inputs, found {names}"
        )
    taken = set()

    def first(predicate: Callable[[str], bool], candidates: Sequence[str] = names) -> Optional[str]:
        return next((n for n in candidates if n not in taken and predicate(n.lower())), None)

    def claim(name: Optional[str]) -> Optional[str]:
        if name is not None:
            taken.add(name)
        return name

    ids_name = claim(
        first(lambda n: "input" in n and "id" in n)
        or first(lambda n: "id" in n)
    )
    mask_name = claim(
        first(lambda n: "mask" in n or "attention" in n)
        or first(lambda n: "attn" in n)
    )
    image_name = claim(first(lambda n: "pixel" in n or "image" in n))

    # Positional fallbacks draw only from names no other role has claimed.
    ids_name = ids_name or claim(first(lambda n: True))
    mask_name = mask_name or claim(first(lambda n: True, names[::-1]))
    image_name = image_name or claim(first(lambda n: True))

    if ids_name is None or mask_name is None or image_name is None:
        raise UnresolvedInputsError(f"Could not assign distinct ids, mask and image inputs from {names}")
    return ResolvedInputs(ids_name=ids_name, mask_name=mask_name, image_name=image_name)


def _select_providers(available: Sequence[str]) -> List[str]:
    providers = []
    if _CUDA_PROVIDER in available:
        providers.append(_CUDA_PROVIDER)
    providers.append(_CPU_PROVIDER)  # Always have CPU fallback
    return providers


class InferenceSession:
    """Thin wrapper over a runtime session exposing the calls the tagger needs."""

    def __init__(self, runtime_session: Any, model_path: Optional[Union[str, Path]] = None):
        self._session = runtime_session
        self.model_path = Path(model_path) if model_path is not None else None
        self._resolved: Optional[ResolvedInputs] = None

    @classmethod
    def load(cls, model_path: Union[str, Path]) -> "InferenceSession":
        """Load an ONNX model from disk."""
        import onnxruntime as ort

        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        runtime_session = ort.InferenceSession(
            str(model_path),
            sess_options=sess_options,
            providers=_select_providers(ort.get_available_providers()),
        )
        active_provider = runtime_session.get_providers()[0] if runtime_session.get_providers() else "Unknown"
        logger.info(f"🧠 Loaded {Path(model_path).name} using {active_provider}")
        return cls(runtime_session, model_path)

    @property
    def input_names(self) -> List[str]:
        return [i.name for i in self._session.get_inputs()]

    def resolve_inputs(self) -> ResolvedInputs:
        if self._resolved is None:
            self._resolved = resolve_input_names(self.input_names)
        return self._resolved

    def run(self, inputs: Dict[str, np.ndarray], num_candidates: Optional[int] = None) -> np.ndarray:
        """Run the model and return the per-candidate logits as a 1-D array."""
        if self._session is None:
            raise RuntimeError("Inference session has been closed")
        outputs = self._session.run(None, inputs)
        if not outputs:
            raise UnexpectedOutputShapeError("Model returned no outputs")
        return squeeze_logits(outputs[0], num_candidates)

    def close(self) -> None:
        """Drop the runtime handle so its resources can be released."""
        self._session = None


def squeeze_logits(output: Any, num_candidates: Optional[int] = None) -> np.ndarray:
    """Flatten a ``[1, N]`` (or ``[N, 1]`` / ``[N]``) logits tensor to ``[N]``."""
    logits = np.asarray(output, dtype=np.float32)
    if logits.ndim == 2 and 1 in logits.shape:
        logits = logits.reshape(-1)
    if logits.ndim != 1:
        raise UnexpectedOutputShapeError(f"Expected [1, N] logits, got shape {tuple(np.shape(output))}")
    if num_candidates is not None and logits.shape[0] != num_candidates:
        raise UnexpectedOutputShapeError(
            f"Expected {num_candidates} logits, got {logits.shape[0]}"
        )
    return logits


_session: Optional[InferenceSession] = None
_session_lock = threading.Lock()


def get_or_create(
    model_path: Union[str, Path],
    loader: Callable[[Union[str, Path]], InferenceSession] = InferenceSession.load,
) -> InferenceSession:
    """Return the shared session, loading the model on first use.

    Racing first callers may each load a session; only the first one
    published is kept and the others are closed.
    """
    global _session
    existing = _session
    if existing is not None:
        return existing

    created = loader(model_path)
    with _session_lock:
        if _session is not None:
            created.close()
            return _session
        _session = created
        return created


def reset_session() -> None:
    """Close and forget the shared session."""
    global _session
    with _session_lock:
        if _session is not None:
            _session.close()
        _session = None
