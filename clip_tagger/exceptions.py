"""
Exception types raised by the tagging pipeline.
"""


class TaggerError(Exception):
    """Base exception for tagging pipeline errors."""
    pass


class ArtifactError(TaggerError):
    """Base exception for artifact acquisition errors."""
    pass


class NetworkError(ArtifactError):
    """Transport-level failure while downloading an artifact."""
    pass


class IntegrityError(ArtifactError):
    """Downloaded artifact does not match its expected SHA-256 digest."""
    pass


class InstallError(ArtifactError):
    """Artifact could not be written or moved into place."""
    pass


class MalformedTokenizerError(TaggerError):
    """Tokenizer definition is missing required fields or is not valid JSON."""
    pass


class UnresolvedInputsError(TaggerError):
    """Model does not declare enough inputs to resolve ids, mask and image."""
    pass


class UnexpectedOutputShapeError(TaggerError):
    """Model output is not a per-candidate logits vector."""
    pass
