"""Pydantic models for ravenmind.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field


class OllamaConfig(BaseModel):
    """Text-generation backend (Ollama) configuration."""

    host: str = Field(default="http://localhost:11434", description="Ollama server URL")
    model: str = Field(default="qwen2.5:14b", description="Chat model served by Ollama")
    timeout: int = Field(default=300, description="Request timeout in seconds", ge=1)
    keep_alive: int = Field(
        default=300,
        description="Seconds to keep the model resident after a request (-1 = forever)",
        ge=-1,
    )
    sleep_after: int = Field(
        default=300,
        description="Seconds of inactivity before the model is put to sleep",
        ge=1,
    )
    sleep_check_interval: int = Field(
        default=30,
        description="Seconds between inactivity checks",
        ge=1,
    )
    preload_on_startup: bool = Field(
        default=True,
        description="Wake the model when the runtime starts",
    )
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, description="Maximum tokens per generation", ge=1)
    context_length: int = Field(default=4096, description="Context window size", ge=1024)


class SummarizationConfig(BaseModel):
    """Session summarization model configuration."""

    model: str = Field(default="qwen2.5:3b", description="Model used for summaries")
    max_tokens: int = Field(default=1024, description="Maximum summary tokens", ge=1)
    temperature: float = Field(default=0.3, description="Summary temperature", ge=0.0, le=2.0)


class EmbeddingConfig(BaseModel):
    """Embedding model configuration."""

    model: str = Field(default="nomic-embed-text", description="Ollama embedding model")
    timeout: int = Field(default=30, description="Request timeout in seconds", ge=1)


class VectorStoreConfig(BaseModel):
    """ChromaDB vector store configuration."""

    host: str | None = Field(
        default=None,
        description="ChromaDB server host (None = embedded client)",
    )
    port: int = Field(default=8000, description="ChromaDB server port", ge=1, le=65535)
    persist_directory: str | None = Field(
        default="~/.ravenmind/chroma",
        description="Directory for embedded persistent storage (None = in-memory)",
    )
    collection_name: str = Field(default="memories", description="Collection name")


class TierAllocation(BaseModel):
    """Share of the context budget given to each memory tier."""

    active: float = Field(default=0.5, description="Current conversation", ge=0.0, le=1.0)
    profile: float = Field(default=0.3, description="User profile facts", ge=0.0, le=1.0)
    episodic: float = Field(default=0.2, description="Past session summaries", ge=0.0, le=1.0)


class MemoryConfig(BaseModel):
    """Conversation and long-term memory configuration."""

    enabled: bool = Field(default=True, description="Enable long-term memory")
    storage_path: str = Field(
        default="~/.ravenmind/conversations.db",
        description="Path to SQLite database for conversation storage",
    )
    conversation_ttl: int = Field(
        default=1800,
        description="Seconds of inactivity after which a thread's messages expire",
        ge=60,
    )
    max_thread_messages: int = Field(
        default=100,
        description="Maximum stored messages per thread",
        ge=10,
    )
    max_context_tokens: int = Field(
        default=4096,
        description="Token budget shared by the three memory tiers",
        ge=1024,
    )
    chars_per_token: int = Field(default=4, description="Token estimate divisor", ge=1)
    tier_allocation: TierAllocation = Field(default_factory=TierAllocation)
    profile_threshold: float = Field(
        default=0.4,
        description="Minimum effective relevance for profile memories",
        ge=0.0,
        le=1.0,
    )
    episodic_threshold: float = Field(
        default=0.55,
        description="Minimum effective relevance for episodic memories",
        ge=0.0,
        le=1.0,
    )
    time_decay_per_day: float = Field(
        default=0.98,
        description="Relevance multiplier per day of memory age",
        ge=0.5,
        le=1.0,
    )
    dedup_threshold: float = Field(
        default=0.85,
        description="Similarity at which a new memory replaces an existing one",
        ge=0.0,
        le=1.0,
    )
    min_importance: float = Field(
        default=0.3,
        description="Minimum importance for extracted memories to be stored",
        ge=0.0,
        le=1.0,
    )
    summarize_after_messages: int = Field(
        default=15,
        description="Message count that triggers session summarization",
        ge=1,
    )
    summarize_after_idle: int = Field(
        default=1800,
        description="Idle seconds that trigger session summarization",
        ge=60,
    )
    summary_message_count: int = Field(
        default=30,
        description="Recent messages fed to the summarizer",
        ge=1,
    )


class ComfyUIConfig(BaseModel):
    """Image-generation backend (ComfyUI) configuration."""

    enabled: bool = Field(default=True, description="Enable image generation")
    url: str = Field(default="http://localhost:8188", description="ComfyUI server URL")
    checkpoint: str = Field(
        default="z-image-turbo.safetensors",
        description="Checkpoint loaded by the generation workflow",
    )
    max_queue_size: int = Field(default=5, description="Maximum queued jobs", ge=1)
    max_jobs_per_user: int = Field(default=2, description="Concurrent jobs per user", ge=1)
    timeout: int = Field(default=120, description="Seconds to wait for a job", ge=1)
    poll_interval: float = Field(default=1.0, description="Seconds between polls", gt=0.0)


class GPUConfig(BaseModel):
    """GPU memory coordination configuration."""

    total_vram_mb: int | None = Field(
        default=None,
        description="Total VRAM in MB (None = detect with nvidia-smi, falling back to 24576)",
        ge=1,
    )
    min_free_buffer_mb: int = Field(
        default=512,
        description="VRAM held back from every allocation",
        ge=0,
    )
    poll_interval: float = Field(default=5.0, description="Seconds between status polls", gt=0.0)
    warning_threshold: float = Field(default=0.75, description="Usage warning level", ge=0.0, le=1.0)
    critical_threshold: float = Field(default=0.9, description="Usage critical level", ge=0.0, le=1.0)
    task_expiry: int = Field(
        default=900,
        description="Seconds after which an unreleased allocation is force-released",
        ge=1,
    )
    llm_estimate_mb: int = Field(default=4096, description="Estimated chat VRAM", ge=0)
    image_estimate_mb: int = Field(default=8000, description="Estimated image VRAM", ge=0)
    embedding_estimate_mb: int = Field(default=500, description="Estimated embedding VRAM", ge=0)
    summarization_estimate_mb: int = Field(
        default=2000, description="Estimated summarization VRAM", ge=0
    )


class ImpersonationConfig(BaseModel):
    """Impersonation and injection detection configuration."""

    enabled: bool = Field(default=True, description="Enable detection")
    similarity_threshold: float = Field(
        default=0.7,
        description="Name similarity treated as impersonation",
        ge=0.0,
        le=1.0,
    )
    block_threshold: float = Field(
        default=0.8,
        description="Detection confidence at which a message is blocked",
        ge=0.0,
        le=1.0,
    )
    suspicious_patterns: list[str] = Field(
        default=[
            r"pretend\s+(to\s+)?be",
            r"you\s+are\s+(now\s+)?(?:the\s+)?owner",
            r"ignore\s+(all\s+)?previous",
            r"new\s+instructions?:",
            r"\[system\]",
            r"\[admin\]",
            r"\[owner\]",
            r"override\s+permissions?",
            r"grant\s+(me\s+)?access",
        ],
        description="Case-insensitive regular expressions flagged as suspicious",
    )


class ToolPermissionsConfig(BaseModel):
    """Tool privilege tiers."""

    always_blocked: list[str] = Field(
        default=["filesystem_delete", "filesystem_write"],
        description="Tools nobody may run without an explicit owner override",
    )
    owner_only: list[str] = Field(
        default=["filesystem_read", "filesystem_list", "execute_command", "mcp_server_restart"],
        description="Tools hidden from everyone except owners",
    )
    admin_only: list[str] = Field(
        default=["user_ban", "user_kick", "channel_purge"],
        description="Tools requiring admin or owner",
    )
    moderator_only: list[str] = Field(
        default=["user_timeout", "message_delete"],
        description="Tools requiring moderator or above",
    )


class SecurityConfig(BaseModel):
    """User roles and access control."""

    owner_ids: list[str] = Field(default_factory=list, description="Bot owner user ids")
    admin_ids: list[str] = Field(default_factory=list, description="Admin user ids")
    moderator_ids: list[str] = Field(default_factory=list, description="Moderator user ids")
    impersonation: ImpersonationConfig = Field(default_factory=ImpersonationConfig)
    tools: ToolPermissionsConfig = Field(default_factory=ToolPermissionsConfig)


class AgentConfig(BaseModel):
    """Agent loop configuration."""

    max_iterations: int = Field(
        default=15,
        description="Maximum non-think tool calls per turn",
        ge=1,
        le=50,
    )
    max_think_calls: int = Field(
        default=50,
        description="Safety cap on think calls per turn",
        ge=1,
    )
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, description="Maximum tokens per turn", ge=1)
    tool_timeout: float = Field(default=60.0, description="Default tool timeout (s)", gt=0.0)
    image_tool_timeout: float = Field(
        default=600.0,
        description="Timeout for generate_image (s)",
        gt=0.0,
    )


class ToolsConfig(BaseModel):
    """Built-in tool configuration."""

    web_search: bool = Field(default=True, description="Enable web search")
    fetch_url: bool = Field(default=True, description="Enable URL fetching")
    fetch_allowlist: list[str] = Field(
        default=[
            "en.wikipedia.org",
            "www.wikipedia.org",
            "arxiv.org",
            "export.arxiv.org",
            "api.duckduckgo.com",
            "github.com",
            "raw.githubusercontent.com",
            "docs.python.org",
            "developer.mozilla.org",
            "stackoverflow.com",
        ],
        description="Hostnames fetch_url may contact",
    )
    fetch_max_chars: int = Field(default=8000, description="fetch_url output cap", ge=100)


class ExternalMCPServerConfig(BaseModel):
    """Configuration for connecting to an external MCP server."""

    name: str = Field(description="Server name (used as tool prefix)")
    transport: Literal["stdio", "streamable-http"] = Field(
        default="stdio",
        description="Transport type",
    )
    command: str | None = Field(default=None, description="Command for stdio transport")
    args: list[str] = Field(default_factory=list, description="Command arguments")
    env: dict[str, str] = Field(default_factory=dict, description="Environment variables")
    url: str | None = Field(default=None, description="URL for HTTP transport")


class MCPConfig(BaseModel):
    """External MCP servers."""

    servers: list[ExternalMCPServerConfig] = Field(
        default_factory=list,
        description="Servers whose tools are offered to the agent",
    )
    connect_timeout: float = Field(
        default=30.0,
        description="Seconds allowed for connecting to a server",
        gt=0.0,
    )


class DiscordConfig(BaseModel):
    """Discord transport configuration."""

    token_env: str = Field(
        default="DISCORD_TOKEN",
        description="Environment variable holding the bot token",
    )


class RavenmindConfig(BaseModel):
    """Root configuration model for ravenmind.yaml."""

    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    summarization: SummarizationConfig = Field(default_factory=SummarizationConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    comfyui: ComfyUIConfig = Field(default_factory=ComfyUIConfig)
    gpu: GPUConfig = Field(default_factory=GPUConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
