"""
Configuration management for the CLIP Auto-Tagger.
"""

import re
from pathlib import Path
from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings


_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


class Settings(BaseSettings):
    """Application settings with validation."""

    # Model artifact
    clip_model_url: str = Field(
        default="https://huggingface.co/CyberTimon/RapidRAW-Models/resolve/main/clip_model.onnx?download=true",
        env="CLIP_MODEL_URL",
    )
    clip_model_filename: str = Field(default="clip_model.onnx", env="CLIP_MODEL_FILENAME")
    clip_model_sha256: Optional[str] = Field(
        default="57879bb1c23cdeb350d23569dd251ed4b740a96d747c529e94a2bb8040ac5d00",
        env="CLIP_MODEL_SHA256",
    )

    # Tokenizer artifact
    clip_tokenizer_url: str = Field(
        default="https://huggingface.co/CyberTimon/RapidRAW-Models/resolve/main/clip_tokenizer.json?download=true",
        env="CLIP_TOKENIZER_URL",
    )
    clip_tokenizer_filename: str = Field(default="clip_tokenizer.json", env="CLIP_TOKENIZER_FILENAME")
    clip_tokenizer_sha256: Optional[str] = Field(default=None, env="CLIP_TOKENIZER_SHA256")

    # Local cache
    models_dir: str = Field(default="~/.cache/clip-tagger/models", env="MODELS_DIR")

    # Model contract
    max_tokens: int = Field(default=77, env="MAX_TOKENS", ge=2)
    image_size: int = Field(default=224, env="IMAGE_SIZE", gt=0)

    # Tag selection
    probability_threshold: float = Field(default=0.005, env="PROBABILITY_THRESHOLD", ge=0.0, le=1.0)
    max_model_tags: int = Field(default=10, env="MAX_MODEL_TAGS", ge=0)
    max_color_tags: int = Field(default=2, env="MAX_COLOR_TAGS", ge=0)

    # Download configuration
    connect_timeout: float = Field(default=15.0, env="CONNECT_TIMEOUT", gt=0.0)
    read_timeout: float = Field(default=30.0, env="READ_TIMEOUT", gt=0.0)
    progress_interval: float = Field(default=0.35, env="PROGRESS_INTERVAL", ge=0.0)

    # Batch processing
    max_workers: int = Field(default=2, env="MAX_WORKERS", gt=0)

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    @validator("clip_model_url", "clip_tokenizer_url")
    def validate_url(cls, v):
        """Ensure artifact URLs are HTTP(S)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Artifact URLs must start with http:// or https://")
        return v

    @validator("clip_model_sha256", "clip_tokenizer_sha256", pre=True)
    def validate_sha256(cls, v):
        """Normalise hex digests; an empty value disables verification."""
        if v is None:
            return None
        v = str(v).strip().lower()
        if not v:
            return None
        if not _SHA256_RE.match(v):
            raise ValueError("SHA-256 digests must be 64 hexadecimal characters")
        return v

    @validator("log_level")
    def validate_log_level(cls, v):
        """Ensure the log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {valid_levels}")
        return v.upper()

    def get_cache_dir(self) -> Path:
        """Get the expanded model cache directory."""
        return Path(self.models_dir).expanduser()

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
