"""
Image preprocessing for the CLIP vision tower.
"""

import numpy as np
from PIL import Image

# Per-channel normalisation published with OpenAI CLIP.
CLIP_MEAN = np.array([0.48145466, 0.4578275, 0.40821073], dtype=np.float32)
CLIP_STD = np.array([0.26862954, 0.26130258, 0.27577711], dtype=np.float32)


def preprocess_image(image: Image.Image, size: int = 224) -> np.ndarray:
    """Resize to ``size`` x ``size`` and normalise into a ``[1, 3, H, W]`` tensor."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    image = image.resize((size, size), Image.Resampling.BILINEAR)

    arr = np.asarray(image, dtype=np.float32) / 255.0
    arr = (arr - CLIP_MEAN) / CLIP_STD

    # HWC -> CHW, then add the batch dimension
    arr = np.transpose(arr, (2, 0, 1))
    return np.ascontiguousarray(arr[np.newaxis, ...], dtype=np.float32)
