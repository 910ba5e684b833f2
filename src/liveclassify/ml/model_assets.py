"""Model assets: locate classifier models on disk, downloading when configured.

Asset names are looked up as absolute paths first, then under the configured
models directory. When a HuggingFace repo is configured, missing assets are
downloaded into the models directory.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download

if TYPE_CHECKING:
    from liveclassify.config import Settings

logger = logging.getLogger(__name__)


class ModelAssets:
    """Resolves model asset names to local file paths."""

    def __init__(self, settings: Settings) -> None:
        self._models_dir = Path(settings.models_dir)
        self._repo_id = settings.model_repo_id

        self._lock = threading.Lock()
        self._paths: dict[str, Path] = {}

    @property
    def models_dir(self) -> Path:
        return self._models_dir

    def resolve(self, asset_name: str) -> Path:
        """Return a local path for ``asset_name``.

        Raises:
            FileNotFoundError: If the asset is not on disk and no repo is configured.
        """
        with self._lock:
            cached = self._paths.get(asset_name)
        if cached is not None and cached.exists():
            return cached

        candidate = Path(asset_name)
        if candidate.is_absolute():
            if candidate.exists():
                return candidate
            raise FileNotFoundError(f"Model asset not found: {asset_name}")

        local = self._models_dir / asset_name
        if local.exists():
            return local

        if self._repo_id is None:
            raise FileNotFoundError(f"Model asset not found: {local} (set LIVECLASSIFY_MODEL_REPO_ID to download it)")

        self._models_dir.mkdir(parents=True, exist_ok=True)
        downloaded = Path(
            hf_hub_download(
                repo_id=self._repo_id,
                filename=asset_name,
                local_dir=str(self._models_dir),
            )
        )
        with self._lock:
            self._paths[asset_name] = downloaded
        logger.info("Downloaded %s to %s", asset_name, downloaded)
        return downloaded
