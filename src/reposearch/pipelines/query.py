"""Query pipeline: hybrid chunk search and LLM-based task answering.

Why this exists:
- Runs lexical, vector and structural search against one snapshot
- Fuses the three signals, then layers the heuristic boost rules on top
- Provides both search-only and answer modes

How to use:
    from reposearch.pipelines.query import QueryEngine

    engine = QueryEngine(config, stores, embedding_provider, llm_provider)
    results = await engine.search("owner/name", "change the title to 'Ben Tossell'")
    answer, sources = await engine.answer("owner/name", "where is the header rendered?")
"""

from typing import Optional

from reposearch.config.schema import AppConfig
from reposearch.core.boosts import QueryContext, apply_boosts, build_boost_rules
from reposearch.core.fusion import FusionWeights, explain_score, fuse, join_reasons
from reposearch.core.repository import RepositoryManager
from reposearch.entities import SearchResult
from reposearch.observability.logging import get_logger
from reposearch.providers.base import EmbeddingProvider, LLMProvider, embed_or_empty
from reposearch.storage import IndexStores

logger = get_logger(__name__)

NO_RESULTS_ANSWER = "I couldn't find any code in this repository relevant to the task."

SYSTEM_PROMPT = (
    "You are a senior engineer helping with a task in a code repository. "
    "Answer using only the code excerpts provided. Each excerpt is headed by "
    "[file:start-end]; cite those headers when you refer to code. "
    "If the excerpts are not enough to complete the task, say what is missing."
)


class QueryEngine:
    """Ranks the chunks of an indexed repository for a natural-language query."""

    def __init__(
        self,
        config: AppConfig,
        stores: IndexStores,
        embedding_provider: Optional[EmbeddingProvider] = None,
        llm_provider: Optional[LLMProvider] = None,
    ):
        """Initialize the query engine.

        Args:
            config: Application configuration
            stores: Index stores to read from
            embedding_provider: Provider for query embeddings; None disables the vector signal
            llm_provider: Provider used by ``answer``
        """
        self.config = config
        self.stores = stores
        self.embedding_provider = embedding_provider
        self.llm_provider = llm_provider
        self.repositories = RepositoryManager(stores)
        self.weights = FusionWeights.from_config(config.search)
        self.boost_rules = build_boost_rules(config.search)

    async def search(self, repository: str, query: str, limit: int = 10) -> list[SearchResult]:
        """Search a repository's current snapshot.

        Args:
            repository: Repository name
            query: Natural-language query or task description
            limit: Maximum number of results

        Returns:
            Results ordered by final score (ties broken by chunk id); empty
            when the repository has never been indexed
        """
        logger.info("search_started", repository=repository, query=query, limit=limit)

        record = await self.repositories.get_repository(repository)
        if record is None or not record.is_indexed:
            logger.info("search_repository_not_indexed", repository=repository)
            return []

        # Every read below is pinned to this generation
        repository_id = record.id
        generation = record.generation
        settings = self.config.search

        lexical_hits = await self.stores.lexical.search(
            repository_id, generation, query, limit=settings.lexical_candidates
        )
        query_vector = await embed_or_empty(
            self.embedding_provider, query, timeout=self.config.embedding.timeout, query=query
        )
        vector_hits = []
        if query_vector:
            vector_hits = await self.stores.vectors.search(
                repository_id, generation, query_vector, min_similarity=settings.min_similarity
            )
        structural_hits = await self.stores.symbols.search(repository_id, generation, query)

        lexical = {hit.chunk_id: hit for hit in lexical_hits}
        vector = dict(vector_hits)
        structural = dict(structural_hits)
        candidate_ids = list(dict.fromkeys([*lexical, *vector, *structural]))
        chunks = await self.stores.metadata.get_chunks(repository_id, generation, candidate_ids)

        context = QueryContext.from_query(query)
        results = []
        for chunk_id in candidate_ids:
            chunk = chunks.get(chunk_id)
            if chunk is None:
                continue

            hit = lexical.get(chunk_id)
            lexical_score = hit.score if hit else 0.0
            matched_terms = hit.matched_terms if hit else []
            vector_score = vector.get(chunk_id, 0.0)
            structural_score = structural.get(chunk_id, 0.0)

            base = fuse(lexical_score, vector_score, structural_score, self.weights)
            boosts = apply_boosts(self.boost_rules, chunk, context)
            boost_score = sum(boost.amount for boost in boosts)
            final = base + boost_score
            if final <= settings.min_score:
                continue

            reasons = explain_score(lexical_score, vector_score, structural_score, matched_terms, self.weights)
            reasons.extend(boost.reason for boost in boosts)
            results.append(
                SearchResult(
                    chunk=chunk,
                    lexical_score=lexical_score,
                    vector_score=vector_score,
                    structural_score=structural_score,
                    boost_score=boost_score,
                    fused_score=final,
                    matched_terms=matched_terms,
                    reason=join_reasons(reasons),
                )
            )

        results.sort(key=lambda result: (-result.fused_score, result.chunk.id))
        results = results[:limit]

        logger.info(
            "search_completed",
            repository=repository,
            generation=generation,
            lexical_candidates=len(lexical),
            vector_candidates=len(vector),
            structural_candidates=len(structural),
            result_count=len(results),
        )
        return results

    async def answer(
        self,
        repository: str,
        task: str,
        limit: int = 5,
        max_context_chars: int = 6000,
    ) -> tuple[str, list[SearchResult]]:
        """Answer a task using the most relevant chunks as context.

        Returns:
            Tuple of (answer, results used as context)

        Raises:
            QueryError: If no LLM provider is configured
        """
        if self.llm_provider is None:
            raise QueryError("No LLM provider configured")

        logger.info("answer_started", repository=repository, task=task)
        results = await self.search(repository, task, limit=limit)
        if not results:
            logger.warning("no_results_found", repository=repository, task=task)
            return NO_RESULTS_ANSWER, []

        context_parts = []
        total_length = 0
        for result in results:
            chunk = result.chunk
            part = f"[{chunk.file_path}:{chunk.start_line}-{chunk.end_line}]\n{chunk.content}"
            if context_parts and total_length + len(part) > max_context_chars:
                break
            context_parts.append(part)
            total_length += len(part)

        context = "\n\n".join(context_parts)
        prompt = f"""Code excerpts:
{context}

Task: {task}

Answer:"""

        answer = await self.llm_provider.generate(
            prompt=prompt,
            system_prompt=SYSTEM_PROMPT,
            max_tokens=self.config.llm.max_tokens,
            temperature=self.config.llm.temperature,
        )

        logger.info("answer_completed", repository=repository, source_count=len(context_parts))
        return answer, results[: len(context_parts)]


class QueryError(Exception):
    """Exception raised during query processing."""

    pass
