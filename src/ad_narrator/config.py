"""
Ad Narrator Configuration
=========================

This module handles configuration loading for the narration service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    ADNARRATOR_SOURCE_BACKEND       -> source.backend
    ADNARRATOR_CAMERA_DEVICE        -> source.camera_device
    ADNARRATOR_STREAM_URL           -> source.url
    ADNARRATOR_PROCESS_INTERVAL     -> sampling.process_interval_seconds
    ADNARRATOR_ACCUMULATE_INTERVAL  -> sampling.accumulate_interval_seconds
    ADNARRATOR_MAX_FRAMES           -> sampling.max_frames
    ADNARRATOR_COMPLETION_BACKEND   -> completion.backend
    ADNARRATOR_MODEL                -> completion.model
    ADNARRATOR_BASE_URL             -> completion.base_url
    ADNARRATOR_PROMPT_MODE          -> prompt.mode
    ADNARRATOR_PORT                 -> server.port
    ADNARRATOR_LOG_LEVEL            -> logging.level
    PORT                            -> server.port (Cloud Run)

Example:
    from ad_narrator.config import settings

    print(settings.sampling.process_interval_seconds)
    print(settings.completion.model)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from ad_narrator.models.state import PromptMode


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AgentConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="ad-narrator", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class SourceConfig(BaseModel):
    """Frame source configuration."""

    backend: str = Field(
        default="camera",
        description="Frame source: 'camera', 'websocket' or 'synthetic'",
    )
    camera_device: int = Field(
        default=0,
        ge=0,
        description="OpenCV capture device index",
    )
    url: str = Field(
        default="ws://localhost:8000/ws/stream",
        description="WebSocket URL of an upstream frame stream",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )
    max_queue_size: int = Field(
        default=4,
        ge=1,
        description="Raw frames held between the source and the sampling gate",
    )
    synthetic_fps: float = Field(
        default=10.0,
        gt=0,
        description="Frame rate of the synthetic source",
    )


class SamplingConfig(BaseModel):
    """Sampling gate and accumulation buffer configuration."""

    process_interval_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Minimum spacing between sampled frames",
    )
    accumulate_interval_seconds: float = Field(
        default=6.0,
        ge=0,
        description="Minimum spacing between frames accumulated while a request is in flight",
    )
    max_frames: int = Field(
        default=2,
        ge=1,
        description="Newest frames transmitted per request",
    )
    buffer_warn_size: int = Field(
        default=16,
        ge=1,
        description="Log a warning when the accumulation buffer grows past this size",
    )


class EncoderConfig(BaseModel):
    """Frame encoder configuration."""

    max_image_size: int = Field(
        default=512,
        ge=16,
        description="Shortest-side bound (and square crop size) in pixels",
    )
    jpeg_quality: int = Field(
        default=30,
        ge=1,
        le=100,
        description="JPEG compression quality",
    )


class CompletionConfig(BaseModel):
    """Chat-completion backend configuration."""

    backend: str = Field(
        default="openai",
        description="Completion backend: 'openai' or 'mock'",
    )
    model: str = Field(default="gpt-4o-mini", description="Chat model name")
    base_url: Optional[str] = Field(
        default=None,
        description="OpenAI-compatible endpoint (None = api.openai.com)",
    )
    api_key_env: str = Field(
        default="OPENAI_API_KEY",
        description="Environment variable holding the API key",
    )
    max_tokens: int = Field(default=80, ge=1, description="Completion token cap")
    detail: str = Field(
        default="low",
        description="Image detail hint sent with every frame",
    )
    chunk_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Fail the cycle if no chunk arrives within this time (None = wait forever)",
    )
    mock_delay_seconds: float = Field(
        default=0.05,
        ge=0,
        description="Delay between deltas emitted by the mock backend",
    )


class PromptConfig(BaseModel):
    """Prompt template configuration."""

    mode: PromptMode = Field(
        default=PromptMode.LOCALIZED,
        description="Prompt template: 'localized' (Japanese) or 'english'",
    )
    localized_template: Optional[str] = Field(
        default=None,
        description="Override for the localized template ({previous} placeholder)",
    )
    english_template: Optional[str] = Field(
        default=None,
        description="Override for the English template ({previous} placeholder)",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8001, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the narration service.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    prompt: PromptConfig = Field(default_factory=PromptConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Source settings
    if env_backend := os.environ.get("ADNARRATOR_SOURCE_BACKEND"):
        config_data.setdefault("source", {})["backend"] = env_backend
    if env_device := os.environ.get("ADNARRATOR_CAMERA_DEVICE"):
        config_data.setdefault("source", {})["camera_device"] = int(env_device)
    if env_url := os.environ.get("ADNARRATOR_STREAM_URL"):
        config_data.setdefault("source", {})["url"] = env_url

    # Sampling settings
    if env_process := os.environ.get("ADNARRATOR_PROCESS_INTERVAL"):
        config_data.setdefault("sampling", {})["process_interval_seconds"] = float(env_process)
    if env_accumulate := os.environ.get("ADNARRATOR_ACCUMULATE_INTERVAL"):
        config_data.setdefault("sampling", {})["accumulate_interval_seconds"] = float(env_accumulate)
    if env_frames := os.environ.get("ADNARRATOR_MAX_FRAMES"):
        config_data.setdefault("sampling", {})["max_frames"] = int(env_frames)

    # Completion settings
    if env_completion := os.environ.get("ADNARRATOR_COMPLETION_BACKEND"):
        config_data.setdefault("completion", {})["backend"] = env_completion
    if env_model := os.environ.get("ADNARRATOR_MODEL"):
        config_data.setdefault("completion", {})["model"] = env_model
    if env_base := os.environ.get("ADNARRATOR_BASE_URL"):
        config_data.setdefault("completion", {})["base_url"] = env_base

    # Prompt settings
    if env_mode := os.environ.get("ADNARRATOR_PROMPT_MODE"):
        config_data.setdefault("prompt", {})["mode"] = env_mode

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("ADNARRATOR_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("ADNARRATOR_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
