from __future__ import annotations

from functools import lru_cache

from research_assistant.agents.orchestrator import ResearchOrchestrator
from research_assistant.config import ResearchConfig, settings
from research_assistant.services.credentials import SettingsCredentialProvider


@lru_cache(maxsize=1)
def get_orchestrator() -> ResearchOrchestrator:
    """Process-wide orchestrator built from the deployment settings.

    It keeps no per-query state, so concurrent requests can share it.
    """
    return ResearchOrchestrator(ResearchConfig.from_settings(settings), SettingsCredentialProvider(settings))
