"""
Tests for input-name resolution and the shared inference session.
"""

import threading
import time

import numpy as np
import pytest

from clip_tagger import session as session_module
from clip_tagger.exceptions import UnexpectedOutputShapeError, UnresolvedInputsError
from clip_tagger.session import (
    InferenceSession,
    _select_providers,
    get_or_create,
    reset_session,
    resolve_input_names,
    squeeze_logits,
)
from conftest import FakeRuntimeSession


@pytest.fixture(autouse=True)
def clean_session():
    reset_session()
    yield
    reset_session()


def test_resolve_conventional_names():
    resolved = resolve_input_names(["input_ids", "pixel_values", "attention_mask"])
    assert resolved.ids_name == "input_ids"
    assert resolved.mask_name == "attention_mask"
    assert resolved.image_name == "pixel_values"


def test_resolve_is_case_insensitive():
    resolved = resolve_input_names(["IMAGE", "Input_IDs", "Attention_Mask"])
    assert resolved.ids_name == "Input_IDs"
    assert resolved.mask_name == "Attention_Mask"
    assert resolved.image_name == "IMAGE"


def test_resolve_falls_back_to_positions():
    resolved = resolve_input_names(["a", "b", "c"])
    assert resolved.ids_name == "a"
    assert resolved.mask_name == "c"
    assert resolved.image_name == "b"


def test_resolve_attn_and_unnamed_image():
    resolved = resolve_input_names(["text", "attn", "img"])
    assert resolved.ids_name == "text"
    assert resolved.mask_name == "attn"
    assert resolved.image_name == "img"


@pytest.mark.parametrize("names", [[], ["input_ids", "pixel_values"], ["x", "x", "y"]])
def test_resolve_requires_three_inputs(names):
    with pytest.raises(UnresolvedInputsError):
        resolve_input_names(names)


def test_select_providers_prefers_cuda():
    assert _select_providers(["CUDAExecutionProvider", "CPUExecutionProvider"]) == [
        "CUDAExecutionProvider", "CPUExecutionProvider",
    ]
    assert _select_providers(["CPUExecutionProvider"]) == ["CPUExecutionProvider"]


@pytest.mark.parametrize("output", [
    np.array([[1.0, 2.0, 3.0]]),
    np.array([[1.0], [2.0], [3.0]]),
    np.array([1.0, 2.0, 3.0]),
])
def test_squeeze_logits_accepts_vector_shapes(output):
    logits = squeeze_logits(output, 3)
    assert logits.shape == (3,)
    assert logits.dtype == np.float32
    assert logits.tolist() == [1.0, 2.0, 3.0]


def test_squeeze_logits_rejects_matrix():
    with pytest.raises(UnexpectedOutputShapeError):
        squeeze_logits(np.zeros((2, 3)))


def test_squeeze_logits_rejects_count_mismatch():
    with pytest.raises(UnexpectedOutputShapeError):
        squeeze_logits(np.zeros((1, 4)), 3)


def test_run_returns_flat_logits():
    runtime = FakeRuntimeSession(logits=[[0.5, 1.5]])
    session = InferenceSession(runtime)

    logits = session.run({"input_ids": np.zeros((2, 4), dtype=np.int64)}, num_candidates=2)

    assert logits.tolist() == [0.5, 1.5]
    assert session.resolve_inputs().image_name == "pixel_values"


def test_closed_session_cannot_run():
    session = InferenceSession(FakeRuntimeSession())
    session.close()
    with pytest.raises(RuntimeError):
        session.run({})


def test_get_or_create_reuses_session():
    loads = []

    def loader(path):
        loads.append(path)
        return InferenceSession(FakeRuntimeSession(), path)

    first = get_or_create("model.onnx", loader)
    second = get_or_create("model.onnx", loader)

    assert first is second
    assert len(loads) == 1


def test_concurrent_get_or_create_publishes_one_session():
    barrier = threading.Barrier(4)
    results = []

    def loader(path):
        time.sleep(0.01)
        return InferenceSession(FakeRuntimeSession(), path)

    def worker():
        barrier.wait()
        results.append(get_or_create("model.onnx", loader))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 4
    assert all(result is results[0] for result in results)
    assert session_module._session is results[0]


def test_resolve_never_assigns_one_name_twice():
    resolved = resolve_input_names(["image", "text", "attention_mask"])
    assert resolved.ids_name == "text"
    assert resolved.mask_name == "attention_mask"
    assert resolved.image_name == "image"


@pytest.mark.parametrize("names", [
    ["image", "text", "attention_mask"],
    ["pixel_ids", "mask", "other"],
    ["image_mask", "attention", "id"],
    ["x", "y", "z", "w"],
])
def test_resolved_roles_are_distinct(names):
    resolved = resolve_input_names(names)
    roles = {resolved.ids_name, resolved.mask_name, resolved.image_name}
    assert len(roles) == 3
    assert roles <= set(names)


def test_concurrent_get_or_create_closes_losing_sessions():
    barrier = threading.Barrier(6)
    created = []
    created_lock = threading.Lock()
    results = []

    def loader(path):
        session = InferenceSession(FakeRuntimeSession(), path)
        with created_lock:
            created.append(session)
        time.sleep(0.02)
        return session

    def worker():
        barrier.wait()
        results.append(get_or_create("model.onnx", loader))

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winner = results[0]
    assert all(result is winner for result in results)
    assert winner._session is not None
    assert winner in created
    for session in created:
        if session is not winner:
            assert session._session is None
