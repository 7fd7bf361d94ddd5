"""Logging setup and structured event helpers, built on loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from research_assistant.config import Settings, settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "hpack",
    "openai._base_client",
    "arxiv",
    "asyncio",
)


def setup_logging(source: Settings = settings) -> None:
    """Replace loguru's default sink with ours; safe to call more than once."""
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=source.app_log_level.upper(), colorize=True)

    if source.log_to_file:
        log_dir = Path(source.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "research_{time:YYYY-MM-DD}.log",
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="00:00",
            retention="7 days",
            compression="zip",
        )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(source.noisy_log_level.upper())


setup_logging()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    record: dict[str, Any] = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "tokens": {"in": input_tokens, "out": output_tokens, "total": input_tokens + output_tokens},
        "duration_ms": duration_ms,
        "status": status,
    }
    if error:
        record["error"] = error
        logger.warning(f"LLM_CALL_FAILED: {record}")
        return
    logger.info(f"LLM_CALL: {record}")


def log_research_step(
    research_id: str,
    step_type: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """One line per pipeline stage transition of a research call."""
    record = {"timestamp": _now(), "research_id": research_id, "step": f"{step_type}:{status}", **(data or {})}
    logger.info(f"RESEARCH_STEP: {record}")


def log_event(event_type: str, message: str, level: str = "INFO", **kwargs: Any) -> None:
    record = {"timestamp": _now(), "event_type": event_type, "message": message, **kwargs}
    logger.log(level.upper(), f"EVENT: {record}")
