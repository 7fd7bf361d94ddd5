from __future__ import annotations

from dataclasses import dataclass, field

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "google/gemini-2.0-flash-001"
    openrouter_model: str = ""
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096

    # Search providers
    tavily_api_key: str = ""
    github_token: str = ""
    arxiv_max_results: int = 10
    github_api_url: str = "https://api.github.com/search/repositories"
    github_per_page: int = 8
    provider_http_timeout_s: float = 10.0

    # Paper full text
    pdf_max_papers: int = 2
    pdf_timeout_ms: int = 3000
    pdf_max_pages: int = 20
    pdf_max_chars: int = 8000

    # Strategy budgets
    quick_search_timeout_ms: int = 3000
    quick_processing_timeout_ms: int = 5000
    standard_search_timeout_ms: int = 5000
    standard_processing_timeout_ms: int = 10000
    comprehensive_search_timeout_ms: int = 8000
    comprehensive_processing_timeout_ms: int = 15000

    # Extraction passes
    summary_timeout_ms: int = 8000
    findings_timeout_ms: int = 10000
    statistics_timeout_ms: int = 10000
    questions_timeout_ms: int = 8000
    code_timeout_ms: int = 10000
    summary_doc_chars: int = 800
    findings_doc_chars: int = 600
    statistics_doc_chars: int = 500
    questions_doc_chars: int = 200
    code_doc_chars: int = 300

    # Retry
    research_max_attempts: int = 2
    research_retry_backoff_ms: int = 2000

    # Embeddings
    embedding_backend: str = "hashing"  # hashing | sentence_transformers
    local_embed_model: str = "BAAI/bge-small-en-v1.5"
    embed_batch_size: int = 16
    embed_retry_delay_ms: int = 250

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    log_to_file: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()


@dataclass(frozen=True, slots=True)
class PassTimeouts:
    summary_ms: int = 8000
    findings_ms: int = 10000
    statistics_ms: int = 10000
    questions_ms: int = 8000
    code_ms: int = 10000


@dataclass(frozen=True, slots=True)
class PromptBudgets:
    """Per-document character budgets used when building extraction prompts."""

    summary_chars: int = 800
    findings_chars: int = 600
    statistics_chars: int = 500
    questions_chars: int = 200
    code_chars: int = 300


@dataclass(frozen=True, slots=True)
class ResearchConfig:
    """Immutable configuration handed to one orchestrator instance."""

    model: str = "google/gemini-2.0-flash-001"
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096
    search_timeouts_ms: dict[str, int] = field(
        default_factory=lambda: {"quick": 3000, "standard": 5000, "comprehensive": 8000}
    )
    processing_timeouts_ms: dict[str, int] = field(
        default_factory=lambda: {"quick": 5000, "standard": 10000, "comprehensive": 15000}
    )
    pass_timeouts: PassTimeouts = field(default_factory=PassTimeouts)
    prompt_budgets: PromptBudgets = field(default_factory=PromptBudgets)
    max_attempts: int = 2
    retry_backoff_ms: int = 2000
    embedding_backend: str = "hashing"
    embed_model: str = "BAAI/bge-small-en-v1.5"
    embed_batch_size: int = 16
    embed_retry_delay_ms: int = 250
    arxiv_max_results: int = 10
    github_api_url: str = "https://api.github.com/search/repositories"
    github_per_page: int = 8
    provider_http_timeout_s: float = 10.0
    pdf_max_papers: int = 2
    pdf_timeout_ms: int = 3000
    pdf_max_pages: int = 20
    pdf_max_chars: int = 8000

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "ResearchConfig":
        s = source or settings
        return cls(
            model=s.openrouter_model or s.default_model,
            llm_base_url=s.openrouter_base_url.strip() or "https://openrouter.ai/api/v1",
            llm_temperature=float(s.llm_temperature),
            llm_max_tokens=max(int(s.llm_max_tokens), 256),
            search_timeouts_ms={
                "quick": int(s.quick_search_timeout_ms),
                "standard": int(s.standard_search_timeout_ms),
                "comprehensive": int(s.comprehensive_search_timeout_ms),
            },
            processing_timeouts_ms={
                "quick": int(s.quick_processing_timeout_ms),
                "standard": int(s.standard_processing_timeout_ms),
                "comprehensive": int(s.comprehensive_processing_timeout_ms),
            },
            pass_timeouts=PassTimeouts(
                summary_ms=int(s.summary_timeout_ms),
                findings_ms=int(s.findings_timeout_ms),
                statistics_ms=int(s.statistics_timeout_ms),
                questions_ms=int(s.questions_timeout_ms),
                code_ms=int(s.code_timeout_ms),
            ),
            prompt_budgets=PromptBudgets(
                summary_chars=int(s.summary_doc_chars),
                findings_chars=int(s.findings_doc_chars),
                statistics_chars=int(s.statistics_doc_chars),
                questions_chars=int(s.questions_doc_chars),
                code_chars=int(s.code_doc_chars),
            ),
            max_attempts=max(int(s.research_max_attempts), 1),
            retry_backoff_ms=max(int(s.research_retry_backoff_ms), 0),
            embedding_backend=s.embedding_backend.lower().strip(),
            embed_model=s.local_embed_model,
            embed_batch_size=max(int(s.embed_batch_size), 1),
            embed_retry_delay_ms=max(int(s.embed_retry_delay_ms), 0),
            arxiv_max_results=max(int(s.arxiv_max_results), 1),
            github_api_url=s.github_api_url,
            github_per_page=max(int(s.github_per_page), 1),
            provider_http_timeout_s=float(s.provider_http_timeout_s),
            pdf_max_papers=max(int(s.pdf_max_papers), 0),
            pdf_timeout_ms=max(int(s.pdf_timeout_ms), 1),
            pdf_max_pages=max(int(s.pdf_max_pages), 1),
            pdf_max_chars=max(int(s.pdf_max_chars), 500),
        )
