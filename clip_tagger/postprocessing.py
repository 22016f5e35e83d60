"""
Post-processing of model logits and image-derived color tags.
"""

from typing import List, Sequence
import numpy as np
from PIL import Image
from .models import TagPrediction

COLOR_SAMPLE_SIZE = 100

# Bucket order doubles as the tie-break order when counts are equal.
COLOR_NAMES = ["black", "white", "gray", "red", "orange", "yellow", "green", "blue", "purple", "brown"]
NEUTRAL_COLORS = {"black", "white", "gray"}


def softmax(logits: Sequence[float]) -> np.ndarray:
    """Numerically stable softmax over a 1-D array of logits."""
    logits = np.asarray(logits, dtype=np.float64)
    if logits.size == 0:
        return logits.astype(np.float32)
    exps = np.exp(logits - logits.max())
    total = exps.sum()
    if total <= 0.0:
        return np.zeros_like(exps, dtype=np.float32)
    return (exps / total).astype(np.float32)


def select_top_tags(
    probs: Sequence[float],
    candidates: Sequence[str],
    threshold: float = 0.005,
    top_k: int = 10,
) -> List[TagPrediction]:
    """Candidates whose probability exceeds ``threshold``, best first, at most ``top_k``.

    Ties keep candidate order.
    """
    scored = [
        (candidates[i], float(p))
        for i, p in enumerate(probs[:len(candidates)])
        if p > threshold
    ]
    scored.sort(key=lambda item: item[1], reverse=True)
    return [TagPrediction(name=name, confidence=min(1.0, p)) for name, p in scored[:top_k]]


def rgb_to_hsv(rgb: np.ndarray) -> np.ndarray:
    """Convert ``[..., 3]`` RGB in [0, 1] to HSV with hue in degrees [0, 360)."""
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    mx = rgb.max(axis=-1)
    mn = rgb.min(axis=-1)
    delta = mx - mn
    safe_delta = np.where(delta > 0, delta, 1.0)

    hue = np.zeros_like(mx)
    is_r = (delta > 0) & (mx == r)
    is_g = (delta > 0) & (mx == g) & ~is_r
    is_b = (delta > 0) & ~is_r & ~is_g
    hue = np.where(is_r, np.mod((g - b) / safe_delta, 6.0), hue)
    hue = np.where(is_g, (b - r) / safe_delta + 2.0, hue)
    hue = np.where(is_b, (r - g) / safe_delta + 4.0, hue)
    hue = np.mod(hue * 60.0, 360.0)

    sat = np.where(mx > 0, delta / np.where(mx > 0, mx, 1.0), 0.0)
    return np.stack([hue, sat, mx], axis=-1)


def classify_colors(hsv: np.ndarray) -> np.ndarray:
    """Map each HSV pixel to an index into ``COLOR_NAMES``."""
    hue, sat, value = hsv[..., 0], hsv[..., 1], hsv[..., 2]
    idx = {name: i for i, name in enumerate(COLOR_NAMES)}

    conditions = [
        value < 0.2,
        (sat < 0.1) & (value > 0.8),
        sat < 0.1,
        (hue >= 340.0) | (hue < 20.0),
        hue < 45.0,
        hue < 70.0,
        hue < 160.0,
        hue < 260.0,
    ]
    choices = [idx[n] for n in ("black", "white", "gray", "red", "orange", "yellow", "green", "blue")]
    buckets = np.select(conditions, choices, default=idx["purple"])

    warm = (buckets == idx["red"]) | (buckets == idx["orange"])
    brown = warm & (value < 0.6) & (sat < 0.7)
    return np.where(brown, idx["brown"], buckets)


def extract_color_tags(image: Image.Image, max_tags: int = 2) -> List[str]:
    """Most common hue buckets of the image.

    Returns up to ``max_tags`` colorful buckets; when the image has no
    colorful pixels at all, returns the single dominant neutral bucket.
    """
    if max_tags <= 0:
        return []
    if image.mode != "RGB":
        image = image.convert("RGB")
    sample = image.resize((COLOR_SAMPLE_SIZE, COLOR_SAMPLE_SIZE), Image.Resampling.BILINEAR)
    rgb = np.asarray(sample, dtype=np.float32) / 255.0

    buckets = classify_colors(rgb_to_hsv(rgb))
    counts = np.bincount(buckets.ravel(), minlength=len(COLOR_NAMES))

    # Stable sort keeps COLOR_NAMES order among equal counts.
    ranked = [int(i) for i in np.argsort(-counts, kind="stable") if counts[i] > 0]
    colorful = [COLOR_NAMES[i] for i in ranked if COLOR_NAMES[i] not in NEUTRAL_COLORS]
    if colorful:
        return colorful[:max_tags]
    return [COLOR_NAMES[ranked[0]]] if ranked else []
