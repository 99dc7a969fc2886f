"""
Configuration Management - Centralized configuration for the RAG kernel

Values are resolved in order: dataclass defaults, then an optional YAML
file, then environment variables (a local .env file is loaded first).
Library classes never read the environment themselves; they receive the
resolved values from here.

License: MIT
"""

import os
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from pathlib import Path
import logging

import yaml
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class ChunkingConfig:
    """Configuration for text chunking."""

    max_tokens_per_line: int = 100
    max_tokens_per_paragraph: int = 1000


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "text-embedding-3-small"
    batch_size: int = 100
    max_retries: int = 3
    timeout: float = 30.0


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""

    backend: str = "memory"

    # ChromaDB specific
    persist_directory: Optional[str] = None


@dataclass
class MemoryConfig:
    """Configuration for semantic memory."""

    collection: str = "documents"
    limit: int = 5
    min_relevance: float = 0.0
    collection_not_found_fatal: bool = False
    max_concurrency: int = 4
    batch_size: int = 16
    timeout: Optional[float] = None


@dataclass
class LLMConfig:
    """Configuration for language model."""

    model: str = "gpt-4.1"
    max_tokens: int = 1000
    temperature: float = 0.1
    timeout: float = 60.0
    max_retries: int = 3
    max_context_length: int = 8000


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format_type: str = "simple"
    log_file: Optional[str] = None


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""

    prometheus_enabled: bool = True


@dataclass
class RAGKernelConfig:
    """Main RAG kernel configuration."""

    # Environment
    environment: str = "development"
    debug: bool = False

    # Component configurations
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    # Root directory holding one prompt skill directory per skill, loaded at startup
    skills_dir: Optional[str] = None


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


class ConfigManager:
    """
    Configuration manager for loading and validating configuration.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to YAML configuration file (optional)
        """
        self.config_path = config_path
        self._config: Optional[RAGKernelConfig] = None

    def load_config(self) -> RAGKernelConfig:
        """
        Load configuration from file and environment variables.

        Returns:
            RAGKernelConfig instance

        Raises:
            ValueError: If the file is malformed or validation fails
        """
        if self._config is not None:
            return self._config

        config = RAGKernelConfig()

        if self.config_path and Path(self.config_path).exists():
            config = self._load_from_file(config, self.config_path)

        config = self._load_from_env(config)

        self._validate_config(config)

        self._config = config
        logger.info(f"Configuration loaded for environment: {config.environment}")

        return config

    def _load_from_file(self, config: RAGKernelConfig, file_path: str) -> RAGKernelConfig:
        """Load configuration from YAML file."""
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error loading configuration from file: {str(e)}")
            raise ValueError(f"Malformed configuration file {file_path}: {str(e)}") from e

        if not isinstance(file_config, dict):
            raise ValueError(f"Configuration file {file_path} must contain a mapping")

        self._update_config_from_dict(config, file_config)
        logger.info(f"Configuration loaded from file: {file_path}")

        return config

    def _load_from_env(self, config: RAGKernelConfig) -> RAGKernelConfig:
        """Load configuration from environment variables."""

        # Environment
        config.environment = os.getenv("ENVIRONMENT", config.environment)
        config.debug = _env_bool("DEBUG", config.debug)
        config.skills_dir = os.getenv("SKILLS_DIR", config.skills_dir)

        # Chunking
        config.chunking.max_tokens_per_line = int(
            os.getenv("CHUNK_MAX_TOKENS_PER_LINE", str(config.chunking.max_tokens_per_line))
        )
        config.chunking.max_tokens_per_paragraph = int(
            os.getenv(
                "CHUNK_MAX_TOKENS_PER_PARAGRAPH", str(config.chunking.max_tokens_per_paragraph)
            )
        )

        # Embedding
        config.embedding.model = os.getenv("EMBEDDING_MODEL", config.embedding.model)
        config.embedding.batch_size = int(
            os.getenv("EMBEDDING_BATCH_SIZE", str(config.embedding.batch_size))
        )
        config.embedding.timeout = float(
            os.getenv("EMBEDDING_TIMEOUT", str(config.embedding.timeout))
        )

        # Vector Store
        config.vector_store.backend = os.getenv("VECTOR_STORE_BACKEND", config.vector_store.backend)
        config.vector_store.persist_directory = os.getenv(
            "CHROMA_PERSIST_DIRECTORY", config.vector_store.persist_directory
        )

        # Memory
        config.memory.collection = os.getenv("MEMORY_COLLECTION", config.memory.collection)
        config.memory.limit = int(os.getenv("MEMORY_LIMIT", str(config.memory.limit)))
        config.memory.min_relevance = float(
            os.getenv("MEMORY_MIN_RELEVANCE", str(config.memory.min_relevance))
        )
        config.memory.collection_not_found_fatal = _env_bool(
            "MEMORY_COLLECTION_NOT_FOUND_FATAL", config.memory.collection_not_found_fatal
        )
        config.memory.max_concurrency = int(
            os.getenv("MEMORY_MAX_CONCURRENCY", str(config.memory.max_concurrency))
        )

        # LLM
        config.llm.model = os.getenv("LLM_MODEL", config.llm.model)
        config.llm.max_tokens = int(os.getenv("LLM_MAX_TOKENS", str(config.llm.max_tokens)))
        config.llm.temperature = float(os.getenv("LLM_TEMPERATURE", str(config.llm.temperature)))
        config.llm.timeout = float(os.getenv("LLM_TIMEOUT", str(config.llm.timeout)))
        config.llm.max_context_length = int(
            os.getenv("MAX_CONTEXT_LENGTH", str(config.llm.max_context_length))
        )

        # Logging
        config.logging.level = os.getenv("LOG_LEVEL", config.logging.level)
        config.logging.format_type = os.getenv("LOG_FORMAT", config.logging.format_type)
        config.logging.log_file = os.getenv("LOG_FILE", config.logging.log_file)

        # Monitoring
        config.monitoring.prometheus_enabled = _env_bool(
            "PROMETHEUS_ENABLED", config.monitoring.prometheus_enabled
        )

        return config

    def _update_config_from_dict(self, config: RAGKernelConfig, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for section_name, section_config in config_dict.items():
            if hasattr(config, section_name) and isinstance(section_config, dict):
                section_obj = getattr(config, section_name)
                for key, value in section_config.items():
                    if hasattr(section_obj, key):
                        setattr(section_obj, key, value)
                    else:
                        logger.warning(f"Unknown configuration key: {section_name}.{key}")
            elif hasattr(config, section_name):
                setattr(config, section_name, section_config)
            else:
                logger.warning(f"Unknown configuration section: {section_name}")

    def _validate_config(self, config: RAGKernelConfig) -> None:
        """Validate configuration values."""
        errors = []

        # Validate chunking configuration
        if config.chunking.max_tokens_per_line < 1:
            errors.append("Max tokens per line must be at least 1")

        if config.chunking.max_tokens_per_paragraph < 1:
            errors.append("Max tokens per paragraph must be at least 1")

        # Validate embedding configuration
        if config.embedding.batch_size < 1:
            errors.append("Embedding batch size must be at least 1")

        if config.embedding.timeout <= 0:
            errors.append("Embedding timeout must be positive")

        # Validate vector store configuration
        if config.vector_store.backend not in ["memory", "chroma"]:
            errors.append("Vector store backend must be one of: memory, chroma")

        # Validate memory configuration
        if not config.memory.collection:
            errors.append("Memory collection cannot be empty")

        if config.memory.limit < 1:
            errors.append("Memory limit must be at least 1")

        if not (0.0 <= config.memory.min_relevance <= 1.0):
            errors.append("Memory min relevance must be between 0.0 and 1.0")

        if config.memory.max_concurrency < 1:
            errors.append("Memory max concurrency must be at least 1")

        # Validate LLM configuration
        if config.llm.max_tokens < 1:
            errors.append("LLM max tokens must be at least 1")

        if not (0.0 <= config.llm.temperature <= 2.0):
            errors.append("LLM temperature must be between 0.0 and 2.0")

        # Validate logging
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if config.logging.level.upper() not in valid_log_levels:
            errors.append(f"Log level must be one of: {', '.join(valid_log_levels)}")

        if errors:
            error_message = "Configuration validation errors:\n" + "\n".join(
                f"- {error}" for error in errors
            )
            raise ValueError(error_message)

    def get_config(self) -> RAGKernelConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    def reload_config(self) -> RAGKernelConfig:
        """Reload configuration from sources."""
        self._config = None
        return self.load_config()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        config = self.get_config()

        def dataclass_to_dict(obj):
            if hasattr(obj, "__dataclass_fields__"):
                return {
                    field_name: dataclass_to_dict(getattr(obj, field_name))
                    for field_name in obj.__dataclass_fields__
                }
            else:
                return obj

        return dataclass_to_dict(config)


# Global configuration manager instance
_config_manager = None


def get_config_manager(config_path: Optional[str] = None) -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_path)
    return _config_manager


def get_config() -> RAGKernelConfig:
    """Get the current RAG kernel configuration."""
    return get_config_manager().get_config()
