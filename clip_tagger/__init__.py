"""
CLIP Auto-Tagger

On-device auto-tagging for photo previews. Candidate tag phrases are
tokenized with CLIP's byte-level BPE, scored against the image by an ONNX
CLIP model, and post-processed into a ranked, de-duplicated tag list
enriched with color and hierarchy tags.
"""

__version__ = "1.0.0"
__author__ = "CLIP Auto-Tagger Team"
