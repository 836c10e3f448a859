"""
Configuration Management for Sift

Loads configuration from ~/.sift/config.json and environment variables.
A .env file in the working directory is loaded first.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger("sift.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".sift"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
DEFAULT_DB_PATH = CONFIG_DIR / "sift.db"
DEFAULT_MEDIA_ROOT = CONFIG_DIR / "media"


@dataclass
class LLMConfig:
    """Generative model used by the structured extractor"""
    provider: str = "google"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    timeout: float = 60.0


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "google"  # google (Gemini API) or femb (fastembed, on-device)
    model: str = "models/text-embedding-004"


@dataclass
class StoreConfig:
    """SQLite store and local media location"""
    db_path: str = str(DEFAULT_DB_PATH)
    media_root: str = str(DEFAULT_MEDIA_ROOT)


@dataclass
class CalendarConfig:
    """External calendar sync"""
    provider: str = "none"  # none or google
    api_base: str = "https://www.googleapis.com/calendar/v3"
    calendar_id: str = "primary"
    access_token: str = ""  # single-account deployments; multi-user setups inject a token provider
    timeout: float = 10.0


@dataclass
class PipelineConfig:
    """Dump processing knobs (policy thresholds are constants, not config)"""
    context_limit: int = 3
    recent_event_context: int = 20
    workers: int = 4


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class SiftConfig:
    """Main Sift configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm_data.get("provider", defaults.provider),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", defaults.google_model),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        timeout=float(llm_data.get("timeout", defaults.timeout)),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        mode=embedding_data.get("mode", "google"),
        model=embedding_data.get("model", "models/text-embedding-004"),
    )


def _parse_store_config(data: dict) -> StoreConfig:
    store_data = data.get("store", {})
    return StoreConfig(
        db_path=store_data.get("db_path", str(DEFAULT_DB_PATH)),
        media_root=store_data.get("media_root", str(DEFAULT_MEDIA_ROOT)),
    )


def _parse_calendar_config(data: dict) -> CalendarConfig:
    calendar_data = data.get("calendar", {})
    defaults = CalendarConfig()
    return CalendarConfig(
        provider=calendar_data.get("provider", defaults.provider),
        api_base=calendar_data.get("api_base", defaults.api_base),
        calendar_id=calendar_data.get("calendar_id", defaults.calendar_id),
        access_token=calendar_data.get("access_token", ""),
        timeout=float(calendar_data.get("timeout", defaults.timeout)),
    )


def _parse_pipeline_config(data: dict) -> PipelineConfig:
    pipeline_data = data.get("pipeline", {})
    return PipelineConfig(
        context_limit=int(pipeline_data.get("context_limit", 3)),
        recent_event_context=int(pipeline_data.get("recent_event_context", 20)),
        workers=int(pipeline_data.get("workers", 4)),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=int(server_data.get("port", 8080)),
    )


def load_config() -> SiftConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (including a local .env file)
    2. Config file (~/.sift/config.json)
    3. Default values
    """
    load_dotenv()
    config = SiftConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.embedding = _parse_embedding_config(data)
            config.store = _parse_store_config(data)
            config.calendar = _parse_calendar_config(data)
            config.pipeline = _parse_pipeline_config(data)
            config.server = _parse_server_config(data)
            config.log_level = data.get("log_level", "INFO")
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    if os.getenv("SIFT_DB_PATH"):
        config.store.db_path = os.getenv("SIFT_DB_PATH")
    if os.getenv("SIFT_MEDIA_ROOT"):
        config.store.media_root = os.getenv("SIFT_MEDIA_ROOT")
    if os.getenv("EMBEDDING_MODE"):
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("SIFT_CALENDAR_PROVIDER"):
        config.calendar.provider = os.getenv("SIFT_CALENDAR_PROVIDER")
    if os.getenv("GOOGLE_CALENDAR_TOKEN"):
        config.calendar.access_token = os.getenv("GOOGLE_CALENDAR_TOKEN")
        config._env_sourced_keys.add("calendar_access_token")
    if os.getenv("SIFT_WORKERS"):
        config.pipeline.workers = int(os.getenv("SIFT_WORKERS"))
    if os.getenv("SIFT_PORT"):
        config.server.port = int(os.getenv("SIFT_PORT"))
    if os.getenv("SIFT_LOG_LEVEL"):
        config.log_level = os.getenv("SIFT_LOG_LEVEL")

    # LLM env var overrides (track env-sourced keys so they are never saved)
    _env_llm_map = {
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_MODEL": "google_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "SIFT_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: SiftConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "timeout": config.llm.timeout,
    }
    for key in ("google_api_key", "anthropic_api_key", "openai_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "llm": llm_section,
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
        },
        "store": {
            "db_path": config.store.db_path,
            "media_root": config.store.media_root,
        },
        "calendar": {
            "provider": config.calendar.provider,
            "api_base": config.calendar.api_base,
            "calendar_id": config.calendar.calendar_id,
            "access_token": "" if "calendar_access_token" in env_sourced else config.calendar.access_token,
            "timeout": config.calendar.timeout,
        },
        "pipeline": {
            "context_limit": config.pipeline.context_limit,
            "recent_event_context": config.pipeline.recent_event_context,
            "workers": config.pipeline.workers,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
        "log_level": config.log_level,
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories(config: SiftConfig) -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    Path(config.store.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    Path(config.store.media_root).expanduser().mkdir(parents=True, exist_ok=True)
