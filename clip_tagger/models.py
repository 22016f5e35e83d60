"""
Data models for the CLIP Auto-Tagger.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class ArtifactDescriptor(BaseModel):
    """A remote binary artifact and where it lives in the local cache."""
    url: str
    local_filename: str
    expected_sha256: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.local_filename

    class Config:
        frozen = True


class ResolvedInputs(BaseModel):
    """Model input tensor names resolved for ids, attention mask and image."""
    ids_name: str
    mask_name: str
    image_name: str


class TagPrediction(BaseModel):
    """Tag prediction from the model."""
    name: str
    confidence: float = Field(ge=0.0, le=1.0)


class TaggingResult(BaseModel):
    """Ordered outcome of tagging one image."""
    tags: List[str] = []
    predictions: List[TagPrediction] = []
    color_tags: List[str] = []
    hierarchy_tags: List[str] = []
    processing_time: float = 0.0


class ImageTaggingResult(BaseModel):
    """Result of tagging a single image file."""
    image_id: str
    success: bool
    tags: List[str] = []
    processing_time: float = 0.0
    error: Optional[str] = None


class BatchTaggingResult(BaseModel):
    """Result of tagging a batch of image files."""
    batch_size: int
    successful: int
    failed: int
    total_tags: int
    processing_time: float
    results: List[ImageTaggingResult]


class ArtifactStatus(BaseModel):
    """Presence of one artifact in the local cache."""
    name: str
    path: str
    present: bool
    size_bytes: Optional[int] = None
