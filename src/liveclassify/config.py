"""Environment-based configuration for liveclassify."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_NAME = "mobilenet_v1_1.0_224_quantized_1_metadata_1.tflite"


class Delegate(StrEnum):
    CPU = "cpu"
    GPU = "gpu"


class ClassifierConfig(BaseModel):
    """Tunable parameters for a single classifier helper.

    Changing a field does not reconfigure a classifier that already exists;
    call ``ImageClassifierHelper.invalidate()`` so the next frame rebuilds it.
    """

    model_config = ConfigDict(validate_assignment=True, protected_namespaces=())

    threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    max_results: int = Field(default=3, gt=0)
    num_threads: int = Field(default=4, ge=1)
    delegate: Delegate = Delegate.CPU
    model_asset_name: str = DEFAULT_MODEL_NAME


class Settings(BaseSettings):
    """Application settings loaded from LIVECLASSIFY_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LIVECLASSIFY_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Classifier
    threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    max_results: int = Field(default=3, gt=0)
    num_threads: int = Field(default=4, ge=1)
    delegate: Delegate = Delegate.CPU
    model_asset_name: str = DEFAULT_MODEL_NAME

    # Model assets
    models_dir: str = "models"
    model_repo_id: str | None = None

    # Camera
    camera_index: int = Field(default=0, ge=0)
    rotation_degrees: int = 0

    log_level: str = "INFO"

    def to_classifier_config(self) -> ClassifierConfig:
        """Return a fresh classifier config seeded from these settings."""
        return ClassifierConfig(
            threshold=self.threshold,
            max_results=self.max_results,
            num_threads=self.num_threads,
            delegate=self.delegate,
            model_asset_name=self.model_asset_name,
        )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
