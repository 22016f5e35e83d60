"""
Byte-level BPE tokenizer for CLIP text inputs.

Encodes tag phrases into the fixed-length id / attention-mask pairs that the
CLIP text tower expects: a regex pre-tokenizer splits the text into pieces,
each piece is re-expressed as byte-unicode characters, merged greedily by
merge rank, and mapped through the vocabulary.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from itertools import islice
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import regex

from .byte_unicode import bytes_to_unicode, decode_bytes
from .exceptions import MalformedTokenizerError
from .logging import get_logger

logger = get_logger("tokenizer")

BOS_TOKEN = "<|startoftext|>"
EOS_TOKEN = "<|endoftext|>"
DEFAULT_BOS_ID = 49406
DEFAULT_EOS_ID = 49407

PRETOKENIZE_PATTERN = regex.compile(
    r"""'s|'t|'re|'ve|'m|'ll|'d| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|\s+(?!\S)|\s+"""
)


@dataclass(frozen=True)
class TokenizerDefinition:
    """Vocabulary and ranked merge rules loaded from a tokenizer artifact."""
    vocabulary: Mapping[str, int]
    merge_ranks: Mapping[Tuple[str, str], int]
    byte_to_unicode: Mapping[int, str]
    bos_id: int = DEFAULT_BOS_ID
    eos_id: int = DEFAULT_EOS_ID

    @property
    def vocab_size(self) -> int:
        return len(self.vocabulary)


@dataclass(frozen=True, eq=False)
class EncodedSequence:
    """Fixed-length token ids and attention mask for one text."""
    ids: np.ndarray
    attention_mask: np.ndarray

    def __len__(self) -> int:
        return len(self.ids)


def _parse_merge(entry, index: int) -> Tuple[str, str]:
    if isinstance(entry, str):
        parts = entry.split(" ")
    elif isinstance(entry, (list, tuple)):
        parts = list(entry)
    else:
        parts = []
    if len(parts) != 2 or not all(isinstance(p, str) and p for p in parts):
        raise MalformedTokenizerError(f"Merge rule #{index} is not a 'left right' pair: {entry!r}")
    return parts[0], parts[1]


def load(definition: Union[bytes, str, Mapping]) -> TokenizerDefinition:
    """Parse a tokenizer definition.

    Accepts the HuggingFace ``tokenizer.json`` layout (``model.vocab`` and
    ``model.merges``) or the same two keys at the top level. Merge rules are
    ranked by their position in the list; earlier rules merge first.
    """
    if isinstance(definition, (bytes, str)):
        try:
            data = json.loads(definition)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedTokenizerError(f"Tokenizer definition is not valid JSON: {e}") from e
    else:
        data = definition

    if not isinstance(data, Mapping):
        raise MalformedTokenizerError("Tokenizer definition must be a JSON object")

    model = data.get("model") if isinstance(data.get("model"), Mapping) else data
    vocab = model.get("vocab")
    merges = model.get("merges")
    if not isinstance(vocab, Mapping):
        raise MalformedTokenizerError("Tokenizer definition has no vocabulary object")
    if not isinstance(merges, list):
        raise MalformedTokenizerError("Tokenizer definition has no merge-rule list")

    try:
        vocabulary = {str(token): int(token_id) for token, token_id in vocab.items()}
    except (TypeError, ValueError) as e:
        raise MalformedTokenizerError(f"Vocabulary ids must be integers: {e}") from e

    merge_ranks: Dict[Tuple[str, str], int] = {}
    for rank, entry in enumerate(merges):
        # Duplicate rules keep their first (highest-priority) rank.
        merge_ranks.setdefault(_parse_merge(entry, rank), rank)

    return TokenizerDefinition(
        vocabulary=vocabulary,
        merge_ranks=merge_ranks,
        byte_to_unicode=bytes_to_unicode(),
        bos_id=vocabulary.get(BOS_TOKEN, DEFAULT_BOS_ID),
        eos_id=vocabulary.get(EOS_TOKEN, DEFAULT_EOS_ID),
    )


class BpeTokenizer:
    """CLIP byte-level BPE encoder with a per-piece merge cache."""

    def __init__(self, definition: TokenizerDefinition):
        self.definition = definition
        self._byte_encoder = definition.byte_to_unicode
        self._decoder: Dict[int, str] = {i: t for t, i in definition.vocabulary.items()}
        # Races between threads only recompute identical entries.
        self._cache: Dict[str, Tuple[str, ...]] = {}
        self.skipped_tokens = 0

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "BpeTokenizer":
        """Load a tokenizer from a definition file on disk."""
        path = Path(path)
        tokenizer = cls(load(path.read_bytes()))
        logger.info(
            f"🔤 Loaded tokenizer {path.name}: {tokenizer.definition.vocab_size} tokens, "
            f"{len(tokenizer.definition.merge_ranks)} merges"
        )
        return tokenizer

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def pretokenize(self, text: str) -> List[str]:
        return PRETOKENIZE_PATTERN.findall(text)

    def _byte_encode(self, piece: str) -> str:
        return "".join(self._byte_encoder[b] for b in piece.encode("utf-8"))

    def bpe(self, token: str) -> Tuple[str, ...]:
        """Greedily merge the lowest-ranked adjacent pair until none applies."""
        cached = self._cache.get(token)
        if cached is not None:
            return cached
        if not token:
            return ()

        ranks = self.definition.merge_ranks
        word = list(token)
        while len(word) > 1:
            best_rank = None
            best_index = -1
            for i in range(len(word) - 1):
                rank = ranks.get((word[i], word[i + 1]))
                if rank is not None and (best_rank is None or rank < best_rank):
                    best_rank = rank
                    best_index = i
            if best_rank is None:
                break
            word[best_index:best_index + 2] = [word[best_index] + word[best_index + 1]]

        result = tuple(word)
        self._cache[token] = result
        return result

    def tokenize(self, text: str) -> List[str]:
        """Return the BPE sub-tokens for ``text`` without id mapping."""
        tokens: List[str] = []
        for piece in self.pretokenize(text):
            tokens.extend(self.bpe(self._byte_encode(piece)))
        return tokens

    def _content_ids(self, text: str) -> Iterator[int]:
        vocabulary = self.definition.vocabulary
        for piece in self.pretokenize(text):
            for sub_token in self.bpe(self._byte_encode(piece)):
                token_id = vocabulary.get(sub_token)
                if token_id is None:
                    self.skipped_tokens += 1
                    logger.debug(f"Skipping unknown sub-token {sub_token!r} in {text!r}")
                    continue
                yield token_id

    def encode(self, text: str, max_len: int) -> EncodedSequence:
        """Encode ``text`` into ``[bos] + content + [eos]`` padded to ``max_len``.

        Content is truncated so bos and eos always fit. Sub-tokens missing from
        the vocabulary are skipped and counted in ``skipped_tokens``.
        """
        if max_len < 2:
            raise ValueError("max_len must leave room for bos and eos")

        content = islice(self._content_ids(text), max_len - 2)
        tokens = [self.definition.bos_id, *content, self.definition.eos_id]

        ids = np.zeros(max_len, dtype=np.int64)
        mask = np.zeros(max_len, dtype=np.int64)
        ids[:len(tokens)] = tokens
        mask[:len(tokens)] = 1
        return EncodedSequence(ids=ids, attention_mask=mask)

    def encode_batch(
        self,
        texts: Sequence[str],
        max_len: int,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Encode many texts into ``[N, max_len]`` id and mask matrices."""
        count = len(texts)
        ids = np.zeros((count, max_len), dtype=np.int64)
        mask = np.zeros((count, max_len), dtype=np.int64)
        for index, text in enumerate(texts):
            encoded = self.encode(text, max_len)
            ids[index] = encoded.ids
            mask[index] = encoded.attention_mask
            if on_progress and index % 20 == 0:
                on_progress(index / count)
        if on_progress:
            on_progress(1.0)
        return ids, mask

    def decode(self, ids: Iterable[int]) -> str:
        """Decode token ids back to text, stopping at the first eos."""
        buffer = bytearray()
        for token_id in ids:
            token_id = int(token_id)
            if token_id == self.definition.eos_id:
                break
            if token_id == self.definition.bos_id:
                continue
            token = self._decoder.get(token_id)
            if token is None:
                continue
            if token.endswith("</w>"):
                buffer += decode_bytes(token[:-4]) + b" "
            else:
                buffer += decode_bytes(token)
        return buffer.decode("utf-8", errors="replace").strip()
