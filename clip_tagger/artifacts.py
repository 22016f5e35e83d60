"""
Local cache for downloaded model artifacts.

Artifacts are streamed into a sibling ``.part`` file, verified against their
SHA-256 digest and moved into place with an atomic rename, so the canonical
path only ever holds a complete file.
"""

import hashlib
import os
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union
import httpx
from .config import settings
from .exceptions import InstallError, IntegrityError, NetworkError
from .logging import get_logger
from .models import ArtifactDescriptor, ArtifactStatus
from .performance_monitor import performance_monitor

# Receives a completed fraction, or None while the total size is unknown.
DownloadProgress = Callable[[Optional[float]], None]

CHUNK_SIZE = 256 * 1024
HASH_CHUNK_SIZE = 1024 * 1024

logger = get_logger("artifacts")

_artifact_locks: Dict[str, threading.Lock] = {}
_artifact_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _artifact_locks_guard:
        lock = _artifact_locks.get(key)
        if lock is None:
            lock = _artifact_locks[key] = threading.Lock()
        return lock


def sha256_file(path: Union[str, Path]) -> str:
    """Hex SHA-256 digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def model_artifact() -> ArtifactDescriptor:
    """Descriptor of the configured CLIP ONNX model."""
    return ArtifactDescriptor(
        url=settings.clip_model_url,
        local_filename=settings.clip_model_filename,
        expected_sha256=settings.clip_model_sha256,
        display_name="AI model",
    )


def tokenizer_artifact() -> ArtifactDescriptor:
    """Descriptor of the configured CLIP tokenizer definition."""
    return ArtifactDescriptor(
        url=settings.clip_tokenizer_url,
        local_filename=settings.clip_tokenizer_filename,
        expected_sha256=settings.clip_tokenizer_sha256,
        display_name="AI tokenizer",
    )


class ArtifactStore:
    """Verifies, downloads and installs artifacts under one cache directory."""

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        client: Optional[httpx.Client] = None,
        progress_interval: Optional[float] = None,
    ):
        self.root = Path(root) if root is not None else settings.get_cache_dir()
        self._client = client
        self.progress_interval = (
            settings.progress_interval if progress_interval is None else progress_interval
        )

    def path_for(self, descriptor: ArtifactDescriptor) -> Path:
        return self.root / descriptor.local_filename

    def is_valid(self, descriptor: ArtifactDescriptor) -> bool:
        """True if the artifact exists and matches its digest, when one is given."""
        path = self.path_for(descriptor)
        if not path.is_file():
            return False
        if descriptor.expected_sha256 is None:
            return True
        return sha256_file(path) == descriptor.expected_sha256.lower()

    def missing(self, descriptors: Iterable[ArtifactDescriptor]) -> List[ArtifactDescriptor]:
        """Descriptors whose file is absent from the cache (no hashing)."""
        return [d for d in descriptors if not self.path_for(d).is_file()]

    def status(self, descriptors: Iterable[ArtifactDescriptor]) -> List[ArtifactStatus]:
        statuses = []
        for descriptor in descriptors:
            path = self.path_for(descriptor)
            present = path.is_file()
            statuses.append(ArtifactStatus(
                name=descriptor.label,
                path=str(path),
                present=present,
                size_bytes=path.stat().st_size if present else None,
            ))
        return statuses

    def ensure(
        self,
        descriptor: ArtifactDescriptor,
        on_progress: Optional[DownloadProgress] = None,
    ) -> Path:
        """Return the path of a valid artifact, downloading it if necessary.

        Concurrent calls for the same artifact are serialised; the second
        caller finds the file already installed and returns without I/O.
        """
        path = self.path_for(descriptor)
        with _lock_for(path):
            if self.is_valid(descriptor):
                logger.debug(f"✅ {descriptor.label} already cached at {path}")
                return path

            if path.exists():
                logger.warning(f"⚠️  Removing stale {descriptor.label} at {path}")
                try:
                    path.unlink()
                except OSError as e:
                    raise InstallError(f"Failed to remove stale artifact {path}: {e}") from e

            self._download(descriptor, path, on_progress)
            return path

    def _download(
        self,
        descriptor: ArtifactDescriptor,
        dest: Path,
        on_progress: Optional[DownloadProgress],
    ) -> None:
        tmp = dest.with_name(f"{dest.name}.part")
        start_time = time.time()
        logger.info(f"⬇️  Downloading {descriptor.label} from {descriptor.url}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            tmp.unlink(missing_ok=True)
        except OSError as e:
            raise InstallError(f"Failed to prepare {dest.parent}: {e}") from e

        client = self._client or httpx.Client(
            follow_redirects=True,
            timeout=httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout),
        )
        try:
            bytes_read, actual = self._stream_to_file(client, descriptor, tmp, on_progress)

            expected = descriptor.expected_sha256
            if expected is not None and actual != expected.lower():
                raise IntegrityError(
                    f"Downloaded {descriptor.label} hash mismatch: expected {expected}, got {actual}"
                )
            if on_progress:
                on_progress(1.0)

            try:
                os.replace(tmp, dest)
            except OSError as e:
                raise InstallError(f"Failed to move downloaded file into place at {dest}: {e}") from e
        finally:
            if self._client is None:
                client.close()
            try:
                tmp.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"⚠️  Could not remove temporary file {tmp}: {e}")

        elapsed = time.time() - start_time
        performance_monitor.record_download(bytes_read, elapsed)
        logger.info(f"✅ Installed {descriptor.label} ({bytes_read / 1_048_576:.1f} MB in {elapsed:.1f}s)")

    def _stream_to_file(
        self,
        client: httpx.Client,
        descriptor: ArtifactDescriptor,
        tmp: Path,
        on_progress: Optional[DownloadProgress],
    ) -> Tuple[int, str]:
        digest = hashlib.sha256()
        bytes_read = 0
        last_percent = -1
        last_report = 0.0

        try:
            with client.stream("GET", descriptor.url, follow_redirects=True) as response:
                response.raise_for_status()
                total = int(response.headers.get("content-length") or 0)
                indeterminate = total <= 0

                try:
                    output = open(tmp, "wb")
                except OSError as e:
                    raise InstallError(f"Failed to open {tmp} for writing: {e}") from e

                with output:
                    for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
                        try:
                            output.write(chunk)
                        except OSError as e:
                            raise InstallError(f"Failed to write {tmp}: {e}") from e
                        digest.update(chunk)
                        bytes_read += len(chunk)

                        if not on_progress:
                            continue
                        now = time.monotonic()
                        percent = -1 if indeterminate else min(100, bytes_read * 100 // total)
                        if percent != last_percent or now - last_report >= self.progress_interval:
                            last_percent = percent
                            last_report = now
                            on_progress(None if indeterminate else min(1.0, bytes_read / total))

                if not indeterminate and bytes_read < total:
                    raise NetworkError(
                        f"Download of {descriptor.label} truncated at {bytes_read} of {total} bytes"
                    )
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"Download of {descriptor.label} failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Download of {descriptor.label} failed: {e}") from e

        return bytes_read, digest.hexdigest()


_store: Optional[ArtifactStore] = None
_store_lock = threading.Lock()


def get_artifact_store() -> ArtifactStore:
    """Return the process-wide artifact store for the configured cache directory."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = ArtifactStore()
    return _store
