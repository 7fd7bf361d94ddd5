from __future__ import annotations

from research_assistant.config import ResearchConfig, Settings
from research_assistant.services.credentials import (
    GITHUB_TOKEN,
    OPENROUTER_API_KEY,
    TAVILY_API_KEY,
    SettingsCredentialProvider,
    StaticCredentialProvider,
)
from research_assistant.services.embeddings import HashingEmbedder, SentenceTransformerEmbedder, build_embedder
from research_assistant.services.resilience import RetryPolicy
from research_assistant.models.errors import DeadlineExceeded, NoSourcesError


def test_research_config_from_settings_overrides():
    source = Settings(
        _env_file=None,
        openrouter_model="openai/gpt-4o-mini",
        quick_search_timeout_ms=1500,
        research_max_attempts=0,
        embed_batch_size=0,
        embedding_backend=" Sentence_Transformers ",
    )
    config = ResearchConfig.from_settings(source)

    assert config.model == "openai/gpt-4o-mini"
    assert config.search_timeouts_ms["quick"] == 1500
    assert config.search_timeouts_ms["standard"] == 5000
    assert config.max_attempts == 1
    assert config.embed_batch_size == 1
    assert config.embedding_backend == "sentence_transformers"


def test_research_config_defaults_to_default_model():
    config = ResearchConfig.from_settings(Settings(_env_file=None, openrouter_model="", default_model="x/y"))
    assert config.model == "x/y"


def test_credential_providers():
    static = StaticCredentialProvider({TAVILY_API_KEY: "tvly", GITHUB_TOKEN: ""})
    assert static.get(TAVILY_API_KEY) == "tvly"
    assert static.get(GITHUB_TOKEN) is None

    from_settings = SettingsCredentialProvider(Settings(_env_file=None, openrouter_api_key="  sk-or  ", tavily_api_key=""))
    assert from_settings.get(OPENROUTER_API_KEY) == "sk-or"
    assert from_settings.get(TAVILY_API_KEY) is None
    assert from_settings.get("default_model") is None


def test_build_embedder_selects_backend():
    assert isinstance(build_embedder(ResearchConfig()), HashingEmbedder)
    assert isinstance(build_embedder(ResearchConfig(embedding_backend="sentence_transformers")), SentenceTransformerEmbedder)
    assert isinstance(build_embedder(ResearchConfig(embedding_backend="unknown")), HashingEmbedder)


def test_retry_policy_only_retries_empty_search():
    policy = RetryPolicy(max_attempts=2, backoff_ms=0)
    assert policy.should_retry(NoSourcesError("none"), 1)
    assert not policy.should_retry(NoSourcesError("none"), 2)
    assert not policy.should_retry(DeadlineExceeded("search", 10), 1)
    assert isinstance(DeadlineExceeded("search", 10), TimeoutError)
