"""
Shared fixtures for the CLIP Auto-Tagger tests.
"""

import json
from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image

from clip_tagger.models import ArtifactDescriptor
from clip_tagger.tokenizer import BpeTokenizer, load

BOS_ID = 100
EOS_ID = 101

TOKENIZER_JSON = {
    "model": {
        "vocab": {
            "c": 0, "a": 1, "t": 2, "ca": 3, "cat": 4, "d": 5, "o": 6, "g": 7,
            "do": 8, "dog": 9, "Ġ": 10, "cat</w>": 11, "dog</w>": 12,
            "<|startoftext|>": BOS_ID, "<|endoftext|>": EOS_ID,
        },
        "merges": ["c a", "ca t", "d o", "do g"],
    }
}


class FakeRuntimeSession:
    """Stands in for an ONNX Runtime session."""

    def __init__(self, input_names=("input_ids", "pixel_values", "attention_mask"), logits=None, error=None):
        self.input_names = list(input_names)
        self.logits = logits
        self.error = error
        self.calls = []

    def get_inputs(self):
        return [SimpleNamespace(name=name) for name in self.input_names]

    def run(self, output_names, inputs):
        self.calls.append(inputs)
        if self.error is not None:
            raise self.error
        if self.logits is not None:
            return [np.asarray(self.logits, dtype=np.float32)]
        count = next(iter(inputs.values())).shape[0]
        return [np.zeros((1, count), dtype=np.float32)]


@pytest.fixture
def tokenizer_json():
    return json.dumps(TOKENIZER_JSON)


@pytest.fixture
def tokenizer():
    return BpeTokenizer(load(TOKENIZER_JSON))


@pytest.fixture
def red_image():
    return Image.new("RGB", (64, 64), (255, 0, 0))


@pytest.fixture
def white_image():
    return Image.new("RGB", (64, 64), (255, 255, 255))


@pytest.fixture
def descriptor():
    return ArtifactDescriptor(
        url="https://models.example.com/clip_model.onnx",
        local_filename="clip_model.onnx",
        display_name="AI model",
    )
