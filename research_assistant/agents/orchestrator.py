from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, AsyncGenerator, Sequence
from uuid import uuid4

from research_assistant.config import ResearchConfig
from research_assistant.llm_client import LanguageModel, OpenRouterLanguageModel
from research_assistant.models.errors import (
    InvalidQueryError,
    NoSourcesError,
    ResearchCancelled,
)
from research_assistant.models.events import StreamEvent
from research_assistant.models.research import (
    CodeExample,
    Finding,
    ResearchMetadata,
    ResearchResult,
    ResearchStage,
    SourceDocument,
    Statistic,
    Strategy,
)
from research_assistant.services import block_parser, code_processor, content_analyzer, document_processor, streaming
from research_assistant.services.credentials import CredentialProvider
from research_assistant.services.embedding_store import EmbeddingStoreFactory, in_memory_store_factory
from research_assistant.services.logger import log_event, log_research_step, logger
from research_assistant.services.resilience import Deadline, RetryPolicy, run_with_deadline
from research_assistant.services.strategy import (
    StrategyBudgets,
    budgets_for,
    classify,
    optimal_chunk_size,
    prioritize_documents,
)
from research_assistant.services.streaming import StatusCallback, StatusEmitter
from research_assistant.tools import paper_text, search_utils
from research_assistant.tools.arxiv_search import AcademicSearchProvider, ArxivSearcher
from research_assistant.tools.github_search import CodeRepositorySearchProvider, GitHubSearcher
from research_assistant.tools.paper_text import ArxivPdfFetcher, PaperTextFetcher
from research_assistant.tools.tavily_search import FAN_OUT_QUERIES, TavilySearcher, WebSearchProvider

MIN_QUERY_LENGTH = 3
MAX_RELEVANT_DOCUMENTS = 8


def validate_query(query: str) -> str:
    text = " ".join((query or "").split())
    if len(text) < MIN_QUERY_LENGTH:
        raise InvalidQueryError(f"Query must be at least {MIN_QUERY_LENGTH} characters")
    return text


def resolve_strategy(query: str, requested: Strategy | str | None) -> Strategy:
    if requested:
        try:
            return Strategy(str(requested).lower())
        except ValueError:
            logger.warning(f"Unknown strategy '{requested}', classifying the query instead")
    return classify(query)


def relevant_document_count(budgets: StrategyBudgets) -> int:
    return max(min(MAX_RELEVANT_DOCUMENTS, int(budgets.max_documents * 0.8)), 1)


def invalid_query_result(message: str) -> ResearchResult:
    return ResearchResult(
        summary="Please provide a more specific research query with at least 3 characters.",
        suggested_questions=["What specific aspect would you like to research?"],
        metadata=ResearchMetadata(
            sources_count=0,
            confidence=0.0,
            research_depth="None",
            error=True,
            error_message=message,
        ),
    )


def degraded_result(
    query: str,
    message: str,
    *,
    strategy: Strategy | None = None,
    attempts: int = 0,
    search_queries: int = 0,
) -> ResearchResult:
    """Well-formed result built only from templates, for when research could not finish."""
    code_examples: list[CodeExample] = []
    if search_utils.is_programming_query(query):
        code_examples = code_processor.create_fallback_examples(query)
    return ResearchResult(
        summary=f'Research analysis for "{query}" encountered technical limitations. {message}',
        findings=content_analyzer.create_fallback_findings(query),
        code_examples=code_examples,
        suggested_questions=content_analyzer.create_fallback_questions(query),
        metadata=ResearchMetadata(
            sources_count=0,
            confidence=0.2,
            research_depth="Error",
            search_queries=search_queries,
            quality_score=0.1,
            strategy=strategy.value if strategy else None,
            attempts=attempts,
            error=True,
            error_message=message,
        ),
    )


@dataclass(slots=True)
class SearchOutcome:
    documents: list[SourceDocument]
    query_count: int


class ResearchOrchestrator:
    """Runs one research query end to end and always returns a ResearchResult.

    Flow per attempt:
      1. searching: fan out to the applicable searchers and settle all of them
      2. downloading: full text for the top arXiv papers, when any were found
      3. processing: quality filter, prioritize, chunk, embed and re-rank into a working set
      4. analyzing: run the extraction passes concurrently, each with a fallback
      5. complete

    Only an empty search stage is retried. Anything else that goes wrong is
    turned into a degraded result at the outermost boundary.

    The configuration and collaborators are fixed at construction. Using a
    different model or provider means building a new orchestrator.
    """

    def __init__(
        self,
        config: ResearchConfig,
        credentials: CredentialProvider,
        *,
        web_searcher: WebSearchProvider | None = None,
        academic_searcher: AcademicSearchProvider | None = None,
        code_searcher: CodeRepositorySearchProvider | None = None,
        model: LanguageModel | None = None,
        paper_fetcher: PaperTextFetcher | None = None,
        embedding_store_factory: EmbeddingStoreFactory | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.config = config
        self.web_searcher = web_searcher or TavilySearcher(credentials)
        self.academic_searcher = academic_searcher or ArxivSearcher(config)
        self.code_searcher = code_searcher or GitHubSearcher(config, credentials)
        self.model = model or OpenRouterLanguageModel(config, credentials)
        self.paper_fetcher = paper_fetcher or ArxivPdfFetcher(config)
        self._store_factory = embedding_store_factory or in_memory_store_factory(config)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=config.max_attempts,
            backoff_ms=config.retry_backoff_ms,
        )

    async def research(self, query: str, strategy: Strategy | str | None = None) -> ResearchResult:
        return await self._run(query, strategy, StatusEmitter())

    async def research_with_streaming(
        self,
        query: str,
        on_status: StatusCallback,
        cancel: asyncio.Event | None = None,
        *,
        strategy: Strategy | str | None = None,
    ) -> ResearchResult:
        return await self._run(query, strategy, StatusEmitter(on_status, cancel=cancel))

    async def stream(
        self, query: str, strategy: Strategy | str | None = None
    ) -> AsyncGenerator[StreamEvent, None]:
        """Status events followed by exactly one terminal research or error event.

        Closing the generator early cancels the run.
        """
        queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        cancel = asyncio.Event()

        async def run() -> None:
            try:
                result = await self.research_with_streaming(
                    query,
                    lambda update: queue.put_nowait(streaming.status(update)),
                    cancel,
                    strategy=strategy,
                )
                queue.put_nowait(streaming.research_complete(result))
            except Exception as e:
                logger.exception(f"Streaming research failed: {e}")
                queue.put_nowait(streaming.error(f"Research failed: {e}"))
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not task.done():
                cancel.set()
                task.cancel()

    async def _run(
        self,
        query: str,
        strategy: Strategy | str | None,
        emitter: StatusEmitter,
    ) -> ResearchResult:
        research_id = uuid4().hex[:12]
        try:
            text = validate_query(query)
        except InvalidQueryError as e:
            logger.warning(f"Rejected query {query!r}: {e}")
            emitter.emit(ResearchStage.COMPLETE, "Please provide a more specific query")
            return invalid_query_result(str(e))

        chosen = resolve_strategy(text, strategy)
        budgets = budgets_for(
            chosen,
            search_timeouts_ms=self.config.search_timeouts_ms,
            processing_timeouts_ms=self.config.processing_timeouts_ms,
        )
        log_event("research_started", text, research_id=research_id, strategy=chosen.value)

        attempt = 0
        search_queries = 0
        try:
            while True:
                attempt += 1
                try:
                    result = await self._attempt(research_id, text, chosen, budgets, emitter, attempt)
                except NoSourcesError as e:
                    search_queries += self._query_count(text, chosen)
                    if not self.retry_policy.should_retry(e, attempt):
                        raise
                    logger.warning(f"[{research_id}] {e}, retrying (attempt {attempt + 1})")
                    emitter.emit(
                        ResearchStage.SEARCHING,
                        f"No sources found, retrying ({attempt + 1}/{self.retry_policy.max_attempts})...",
                    )
                    await self.retry_policy.sleep()
                    self._check_cancelled(emitter)
                    continue
                log_research_step(research_id, "research", "completed", {"attempts": attempt})
                return result
        except ResearchCancelled:
            logger.info(f"[{research_id}] Research cancelled by caller")
            return degraded_result(
                text, "Research was cancelled.", strategy=chosen, attempts=attempt, search_queries=search_queries
            )
        except NoSourcesError as e:
            logger.warning(f"[{research_id}] Giving up after {attempt} attempts: {e}")
            message = "No sources could be retrieved. Please try again or refine your search terms."
        except Exception as e:
            logger.exception(f"[{research_id}] Research failed: {e}")
            message = f"Unexpected error: {e}"

        log_research_step(research_id, "research", "degraded", {"attempts": attempt, "error": message})
        emitter.emit(ResearchStage.COMPLETE, "Research completed with limited results")
        return degraded_result(text, message, strategy=chosen, attempts=attempt, search_queries=search_queries)

    @staticmethod
    def _check_cancelled(emitter: StatusEmitter) -> None:
        if emitter.cancelled:
            raise ResearchCancelled("Research cancelled by caller")

    async def _attempt(
        self,
        research_id: str,
        query: str,
        strategy: Strategy,
        budgets: StrategyBudgets,
        emitter: StatusEmitter,
        attempt: int,
    ) -> ResearchResult:
        self._check_cancelled(emitter)
        if attempt == 1:
            emitter.emit(ResearchStage.SEARCHING, "Searching for sources...")
        log_research_step(research_id, "search", "started", {"attempt": attempt, "strategy": strategy.value})
        outcome = await self._search(query, strategy, budgets)
        if not outcome.documents:
            log_research_step(research_id, "search", "empty", {"attempt": attempt})
            raise NoSourcesError(f"No sources found for '{query}'")
        log_research_step(research_id, "search", "completed", {"documents": len(outcome.documents)})

        deadline = Deadline(budgets.processing_timeout_ms)
        papers = paper_text.downloadable_papers(outcome.documents, self.config.pdf_max_papers)
        if papers:
            self._check_cancelled(emitter)
            emitter.emit(ResearchStage.DOWNLOADING, f"Downloading {len(papers)} papers...")
            outcome = replace(outcome, documents=await self._download(research_id, outcome.documents, papers, deadline))

        self._check_cancelled(emitter)
        emitter.emit(ResearchStage.PROCESSING, f"Processing {len(outcome.documents)} sources...")
        relevant = await self._process(research_id, query, strategy, budgets, outcome.documents, deadline)
        log_research_step(research_id, "process", "completed", {"relevant": len(relevant)})

        self._check_cancelled(emitter)
        emitter.emit(ResearchStage.ANALYZING, "Analyzing content...")
        result = await self._analyze(query, strategy, outcome, relevant, deadline, attempt)
        log_research_step(
            research_id,
            "analyze",
            "completed",
            {"findings": len(result.findings), "code_examples": len(result.code_examples)},
        )

        self._check_cancelled(emitter)
        emitter.emit(ResearchStage.COMPLETE, "Research complete")
        return result

    def _searchers(self, query: str, strategy: Strategy) -> list[tuple[str, Any]]:
        searchers: list[tuple[str, Any]] = [("web", self.web_searcher)]
        if strategy is Strategy.COMPREHENSIVE or search_utils.detect_domain(query) == "academic":
            searchers.append(("academic", self.academic_searcher))
        if search_utils.is_programming_query(query):
            searchers.append(("code", self.code_searcher))
        return searchers

    def _query_count(self, query: str, strategy: Strategy) -> int:
        web_queries = 1
        if strategy is Strategy.COMPREHENSIVE:
            web_queries = len(search_utils.generate_search_queries(query, max_queries=FAN_OUT_QUERIES))
        return web_queries + len(self._searchers(query, strategy)) - 1

    async def _search(self, query: str, strategy: Strategy, budgets: StrategyBudgets) -> SearchOutcome:
        searchers = self._searchers(query, strategy)
        outcomes = await asyncio.gather(
            *(
                run_with_deadline(
                    searcher.search(query, strategy) if name == "web" else searcher.search(query),
                    budgets.search_timeout_ms,
                    f"{name} search",
                )
                for name, searcher in searchers
            ),
            return_exceptions=True,
        )

        documents: list[SourceDocument] = []
        for (name, _), outcome in zip(searchers, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"{name} searcher failed: {outcome}")
                continue
            logger.debug(f"{name} searcher returned {len(outcome)} documents")
            documents.extend(outcome)

        ranked = search_utils.merge_and_rank(documents, query, limit=budgets.max_documents)
        return SearchOutcome(documents=ranked, query_count=self._query_count(query, strategy))

    async def _download(
        self,
        research_id: str,
        documents: Sequence[SourceDocument],
        papers: Sequence[SourceDocument],
        deadline: Deadline,
    ) -> list[SourceDocument]:
        # at most half of what remains, so the extraction passes keep their share
        timeout_ms = deadline.cap(min(self.config.pdf_timeout_ms, deadline.remaining_ms() // 2))
        enriched = await paper_text.download_papers(
            self.paper_fetcher,
            documents,
            papers,
            timeout_ms=timeout_ms,
            max_chars=self.config.pdf_max_chars,
        )
        full_text = sum(1 for doc in enriched if doc.metadata.get("full_text"))
        log_research_step(research_id, "download", "completed", {"papers": len(papers), "full_text": full_text})
        return enriched

    async def _process(
        self,
        research_id: str,
        query: str,
        strategy: Strategy,
        budgets: StrategyBudgets,
        documents: Sequence[SourceDocument],
        deadline: Deadline,
    ) -> list[SourceDocument]:
        pool = document_processor.filter_quality(documents)
        if not pool:
            logger.warning(f"[{research_id}] No document passed the quality filter, using all {len(documents)}")
            pool = list(documents)
        pool = prioritize_documents(pool)

        k = relevant_document_count(budgets)
        chunks = document_processor.chunk(pool, optimal_chunk_size(len(pool), strategy))
        store = self._store_factory()

        async def index_and_retrieve() -> list[SourceDocument]:
            upsert = await document_processor.embed(
                store,
                chunks,
                batch_size=self.config.embed_batch_size,
                retry_delay_ms=self.config.embed_retry_delay_ms,
            )
            if upsert.failed_batches:
                logger.warning(f"[{research_id}] Skipped {upsert.failed_batches} embedding batches")
            return await document_processor.retrieve(store, query, k)

        try:
            relevant = await run_with_deadline(index_and_retrieve(), deadline.cap(deadline.remaining_ms()), "embedding")
        except Exception as e:
            logger.warning(f"[{research_id}] Embedding retrieval failed, ranking directly: {e}")
            relevant = []
        return relevant or document_processor.rank(query, chunks or pool, k)

    async def _analyze(
        self,
        query: str,
        strategy: Strategy,
        outcome: SearchOutcome,
        relevant: list[SourceDocument],
        deadline: Deadline,
        attempt: int,
    ) -> ResearchResult:
        timeouts = self.config.pass_timeouts
        chars = self.config.prompt_budgets
        passes: dict[str, Any] = {
            "summary": content_analyzer.generate_summary(
                self.model, relevant, query, timeout_ms=deadline.cap(timeouts.summary_ms), max_chars=chars.summary_chars
            ),
            "findings": content_analyzer.extract_findings(
                self.model, relevant, query, timeout_ms=deadline.cap(timeouts.findings_ms), max_chars=chars.findings_chars
            ),
            "questions": content_analyzer.generate_questions(
                self.model, relevant, query, timeout_ms=deadline.cap(timeouts.questions_ms), max_chars=chars.questions_chars
            ),
        }
        if strategy is not Strategy.QUICK:
            passes["statistics"] = content_analyzer.extract_statistics(
                self.model, relevant, query, timeout_ms=deadline.cap(timeouts.statistics_ms), max_chars=chars.statistics_chars
            )
        if search_utils.is_programming_query(query):
            passes["code"] = code_processor.extract_code_examples(
                self.model, relevant, query, timeout_ms=deadline.cap(timeouts.code_ms), max_chars=chars.code_chars
            )

        settled = dict(zip(passes, await asyncio.gather(*passes.values(), return_exceptions=True)))

        def value(name: str, fallback: Any) -> Any:
            if name not in settled:
                return fallback
            item = settled[name]
            if isinstance(item, BaseException):
                logger.warning(f"{name} pass raised unexpectedly: {item}")
                return fallback
            return item

        findings: list[Finding] = value("findings", content_analyzer.create_fallback_findings(query))
        statistics: list[Statistic] = value("statistics", [])
        code_examples: list[CodeExample] = value("code", [])
        if "code" in settled and not code_examples:
            code_examples = code_processor.create_fallback_examples(query)

        return ResearchResult(
            summary=value("summary", content_analyzer.fallback_summary(query)),
            findings=findings,
            statistics=[stat for stat in statistics if block_parser.is_valid_statistic(stat.value)],
            code_examples=code_examples,
            suggested_questions=value("questions", content_analyzer.create_fallback_questions(query)),
            metadata=ResearchMetadata(
                sources_count=len(outcome.documents),
                confidence=document_processor.confidence(relevant, len(findings)),
                research_depth=strategy.value.capitalize(),
                search_queries=outcome.query_count,
                quality_score=document_processor.quality_score(relevant),
                strategy=strategy.value,
                attempts=attempt,
            ),
        )
