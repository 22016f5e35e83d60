"""
Tests for the byte-unicode table and the BPE tokenizer.
"""

import numpy as np
import pytest

from clip_tagger.byte_unicode import bytes_to_unicode, decode_bytes, encode_bytes, unicode_to_bytes
from clip_tagger.exceptions import MalformedTokenizerError
from clip_tagger.tokenizer import DEFAULT_BOS_ID, DEFAULT_EOS_ID, BpeTokenizer, load
from conftest import BOS_ID, EOS_ID


def test_byte_table_is_a_bijection():
    table = bytes_to_unicode()
    assert len(table) == 256
    assert len(set(table.values())) == 256
    assert unicode_to_bytes() == {c: b for b, c in table.items()}


def test_byte_table_keeps_printable_ascii_and_shifts_space():
    table = bytes_to_unicode()
    assert table[ord("a")] == "a"
    assert table[ord("!")] == "!"
    assert table[ord(" ")] == "Ġ"
    assert table[0] == chr(256)


def test_encode_decode_bytes():
    text = "héllo wörld"
    assert decode_bytes(encode_bytes(text)).decode("utf-8") == text


def test_load_reads_vocab_merges_and_special_ids(tokenizer):
    definition = tokenizer.definition
    assert definition.bos_id == BOS_ID
    assert definition.eos_id == EOS_ID
    assert definition.merge_ranks[("c", "a")] == 0
    assert definition.merge_ranks[("do", "g")] == 3


def test_load_accepts_top_level_keys_and_pair_merges():
    definition = load({"vocab": {"a": 0, "b": 1}, "merges": [["a", "b"], "a b"]})
    assert definition.merge_ranks == {("a", "b"): 0}
    assert definition.bos_id == DEFAULT_BOS_ID
    assert definition.eos_id == DEFAULT_EOS_ID


def test_load_from_json_bytes(tokenizer_json):
    definition = load(tokenizer_json.encode("utf-8"))
    assert definition.vocab_size == 15


@pytest.mark.parametrize("definition", [
    "not json",
    "[]",
    {"model": {"merges": []}},
    {"model": {"vocab": {"a": 0}}},
    {"model": {"vocab": {"a": "zero"}, "merges": []}},
    {"model": {"vocab": {"a": 0}, "merges": ["a"]}},
    {"model": {"vocab": {"a": 0}, "merges": [42]}},
])
def test_load_rejects_malformed_definitions(definition):
    with pytest.raises(MalformedTokenizerError):
        load(definition)


def test_bpe_applies_merges_in_rank_order(tokenizer):
    assert tokenizer.bpe("cat") == ("cat",)
    assert tokenizer.bpe("dogcat") == ("dog", "cat")
    assert tokenizer.bpe("tac") == ("t", "a", "c")


def test_bpe_caches_results(tokenizer):
    tokenizer.bpe("cat")
    tokenizer.bpe("cat")
    assert tokenizer.cache_size == 1


def test_tokenize_splits_on_spaces(tokenizer):
    assert tokenizer.pretokenize("a cat") == ["a", " cat"]
    assert tokenizer.tokenize("a cat") == ["a", "Ġ", "cat"]


def test_encode_wraps_content_and_pads(tokenizer):
    encoded = tokenizer.encode("cat", 8)

    assert len(encoded) == 8
    assert encoded.ids.dtype == np.int64
    assert encoded.ids.tolist() == [BOS_ID, 4, EOS_ID, 0, 0, 0, 0, 0]
    assert encoded.attention_mask.tolist() == [1, 1, 1, 0, 0, 0, 0, 0]


def test_encode_is_deterministic(tokenizer):
    first = tokenizer.encode("dog cat", 16)
    second = tokenizer.encode("dog cat", 16)
    assert np.array_equal(first.ids, second.ids)
    assert np.array_equal(first.attention_mask, second.attention_mask)


def test_encode_skips_unknown_sub_tokens(tokenizer):
    encoded = tokenizer.encode("xyz", 6)
    assert encoded.ids.tolist() == [BOS_ID, EOS_ID, 0, 0, 0, 0]
    assert encoded.attention_mask.tolist() == [1, 1, 0, 0, 0, 0]
    assert tokenizer.skipped_tokens == 3


def test_encode_truncates_but_keeps_eos(tokenizer):
    encoded = tokenizer.encode("cacacacaca", 4)
    assert encoded.ids.tolist() == [BOS_ID, 3, 3, EOS_ID]
    assert encoded.attention_mask.tolist() == [1, 1, 1, 1]


def test_encode_with_room_for_specials_only(tokenizer):
    encoded = tokenizer.encode("cat", 2)
    assert encoded.ids.tolist() == [BOS_ID, EOS_ID]


def test_encode_rejects_too_short_length(tokenizer):
    with pytest.raises(ValueError):
        tokenizer.encode("cat", 1)


def test_encode_empty_text(tokenizer):
    encoded = tokenizer.encode("", 4)
    assert encoded.ids.tolist() == [BOS_ID, EOS_ID, 0, 0]


def test_mask_matches_non_padding_prefix(tokenizer):
    for text in ["cat", "dog cat", "a dog", ""]:
        encoded = tokenizer.encode(text, 10)
        length = int(encoded.attention_mask.sum())
        assert encoded.attention_mask[:length].tolist() == [1] * length
        assert encoded.ids[length - 1] == EOS_ID
        assert not encoded.ids[length:].any()


def test_encode_batch_shapes_and_progress(tokenizer):
    seen = []
    ids, mask = tokenizer.encode_batch(["cat", "dog", "cat dog"], 8, seen.append)

    assert ids.shape == (3, 8)
    assert mask.shape == (3, 8)
    assert ids[1].tolist()[:3] == [BOS_ID, 9, EOS_ID]
    assert seen[-1] == 1.0


def test_decode_handles_word_markers_and_specials(tokenizer):
    assert tokenizer.decode([BOS_ID, 12, 11, EOS_ID, 4]) == "dog cat"
    assert tokenizer.decode([BOS_ID, 8, 7, EOS_ID, 0, 0]) == "dog"


def test_decode_byte_level_space(tokenizer):
    ids = tokenizer.encode("dog cat", 10).ids
    assert tokenizer.decode(ids) == "dog cat"


def test_from_file(tmp_path, tokenizer_json):
    path = tmp_path / "clip_tokenizer.json"
    path.write_text(tokenizer_json, encoding="utf-8")

    tokenizer = BpeTokenizer.from_file(path)
    assert tokenizer.encode("cat", 4).ids.tolist() == [BOS_ID, 4, EOS_ID, 0]
