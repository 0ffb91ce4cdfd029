"""Configuration schema using Pydantic.

Why this exists:
- Type-safe configuration with validation
- Environment variable support (REPOSEARCH_ prefix, "__" for nesting)
- Profiles for local and server deployments
- One place documenting every tunable of the indexing and query paths

How to extend:
1. Add new fields to existing config classes
2. Create new config classes for new components
3. Reference them from AppConfig
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EmbeddingProviderType(str, Enum):
    """Supported embedding providers."""

    OPENAI = "openai"
    LOCAL = "local"
    MOCK = "mock"


class LLMProviderType(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    MOCK = "mock"


class StoreType(str, Enum):
    """Supported index storage backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class VectorBackendType(str, Enum):
    """Where chunk vectors live when the index is SQLite backed."""

    SQLITE = "sqlite"
    CHROMA = "chroma"


class SourceProviderType(str, Enum):
    """Supported source providers."""

    LOCAL = "local"
    GITHUB = "github"


class EmbeddingConfig(BaseModel):
    """Embedding provider configuration."""

    provider: EmbeddingProviderType = EmbeddingProviderType.LOCAL
    model_name: str = "all-MiniLM-L6-v2"
    api_key: Optional[str] = None
    batch_size: int = Field(default=32, gt=0)
    max_input_chars: int = Field(default=512, gt=0, description="Input is truncated to this prefix")
    timeout: float = Field(default=30.0, gt=0, description="Seconds before an embedding call counts as failed")
    extra_params: dict[str, Any] = Field(default_factory=dict)


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: LLMProviderType = LLMProviderType.OPENAI
    model_name: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    max_tokens: int = Field(default=2000, gt=0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    extra_params: dict[str, Any] = Field(default_factory=dict)


class StorageSettings(BaseModel):
    """Index storage configuration."""

    store_type: StoreType = StoreType.SQLITE
    connection_string: str = "sqlite:///~/.reposearch/index.db"
    vector_backend: VectorBackendType = VectorBackendType.SQLITE
    collection_name: str = "reposearch"
    persist_directory: Optional[Path] = None
    extra_params: dict[str, Any] = Field(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in paths."""
        if self.connection_string and "~" in self.connection_string:
            self.connection_string = self.connection_string.replace("~", str(Path.home()))
        if self.persist_directory:
            self.persist_directory = self.persist_directory.expanduser()


class ChunkingConfig(BaseModel):
    """Chunking configuration.

    Line based because the pattern strategies report line spans:
    - window_lines: generic fallback window (non-overlapping)
    - lookahead_lines: lines kept after a matched declaration in script files
    - symbol_name_chars: display length of element symbol names
    - symbol_context_chars: bound on the context stored with each symbol
    """

    window_lines: int = Field(default=50, gt=0)
    lookahead_lines: int = Field(default=10, ge=0)
    symbol_name_chars: int = Field(default=50, gt=0)
    symbol_context_chars: int = Field(default=500, gt=0)
    section_context_chars: int = Field(default=200, gt=0)


DEFAULT_EXTENSIONS = [
    ".html", ".htm", ".css", ".scss", ".sass",
    ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx",
    ".json", ".md", ".markdown", ".yml", ".yaml", ".xml", ".toml",
    ".php", ".py", ".rb", ".go", ".rs", ".java", ".c", ".cpp", ".h",
]

DEFAULT_EXCLUDED_DIRS = [
    "node_modules", ".next", "dist", "build", ".git", "vendor", "__pycache__", "target",
]


class IndexingConfig(BaseModel):
    """Indexing pass configuration."""

    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    excluded_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    max_file_bytes: int = Field(default=50_000, gt=0)
    max_workers: int = Field(default=4, gt=0, description="Files prepared concurrently")
    fetch_timeout: float = Field(default=300.0, gt=0)


class SearchConfig(BaseModel):
    """Query engine configuration: fusion weights, thresholds and boosts."""

    lexical_weight: float = Field(default=0.3, ge=0.0)
    vector_weight: float = Field(default=0.4, ge=0.0)
    structural_weight: float = Field(default=0.3, ge=0.0)
    lexical_ceiling: float = Field(default=10.0, gt=0.0)
    min_score: float = Field(default=0.1, ge=0.0)
    min_similarity: float = Field(default=0.1)
    semantic_reason_threshold: float = Field(default=0.3)
    lexical_candidates: int = Field(default=50, gt=0)
    boosts: list[str] = Field(
        default_factory=lambda: [
            "quoted_text",
            "ui_task",
            "style_task",
            "markup_file",
            "change_task_terms",
            "role_task",
            "essential_config",
        ],
        description="Enabled boost rules, applied in this order",
    )
    boost_weights: dict[str, float] = Field(
        default_factory=dict,
        description="Overrides for boost magnitudes, keyed by rule name",
    )


class SourceConfig(BaseModel):
    """Source provider configuration."""

    provider: SourceProviderType = SourceProviderType.LOCAL
    local_root: Optional[Path] = None
    github_api_url: str = "https://api.github.com"
    clone_url_template: str = "https://github.com/{repository}.git"
    github_token: Optional[str] = None

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in paths."""
        if self.local_root:
            self.local_root = self.local_root.expanduser()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    json_logs: bool = False
    enable_file: bool = False
    log_dir: Path = Field(default=Path.home() / ".reposearch" / "logs")
    max_days: int = Field(default=30, gt=0)


class AppConfig(BaseSettings):
    """Main application configuration.

    Loads from:
    1. Config file (TOML)
    2. Environment variables (prefixed with REPOSEARCH_)
    3. .env file
    """

    model_config = SettingsConfigDict(
        env_prefix="REPOSEARCH_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    app_name: str = "reposearch"
    data_dir: Path = Field(default=Path.home() / ".reposearch")
    default_ref: str = "main"

    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    sources: SourceConfig = Field(default_factory=SourceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def model_post_init(self, __context: Any) -> None:
        """Post-initialization: create data directory if needed."""
        self.data_dir = self.data_dir.expanduser()
        self.data_dir.mkdir(parents=True, exist_ok=True)
