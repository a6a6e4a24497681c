"""
Visualization resolution pipeline.

One cycle per visualization: dereference the stored definitions, run every
indicator concurrently, compute, and publish the flattened rows keyed by
visualization id. A cycle that fails leaves the previously published rows in
place; a cycle that settles after a newer one has started is discarded.
"""
import asyncio
import hashlib
import itertools
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from idvt.config import settings
from idvt.db.dhis2 import get_dhis2_client
from idvt.schemas.query import (
    DataQuery,
    DataSource,
    Indicator,
    ResolvedDataQuery,
    ResolvedIndicator,
    ResolvedVisualization,
    Visualization,
)
from idvt.services.dimensions import cycle_key
from idvt.services.dispatcher import QueryDispatcher
from idvt.services.document_store import (
    DATA_SOURCES,
    INDICATORS,
    VISUALIZATION_QUERIES,
    DocumentStore,
    get_document_store,
)
from idvt.services.errors import DocumentNotFoundError, JoinCycleError, JoinDepthError
from idvt.services.global_filters import GlobalFilters
from idvt.services.indicator import query_indicator

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_pipeline: Optional["VisualizationPipeline"] = None
_scheduler: Optional["RefreshScheduler"] = None


@dataclass(frozen=True)
class PublishedResult:
    visualization_id: str
    ticket: int = 0
    rows: Tuple[Row, ...] = ()
    key: Tuple[str, ...] = ()
    published_at: Optional[datetime] = None


def definition_digest(visualization: ResolvedVisualization) -> str:
    """Stable digest of the resolved definitions; changes whenever any stored document does."""
    dump = visualization.model_dump(mode="json", exclude={"refresh_interval"})
    return hashlib.sha1(json.dumps(dump, sort_keys=True).encode()).hexdigest()


class ResultStore:
    """Published rows per visualization; only the newest cycle may publish."""

    def __init__(self):
        self._tickets = itertools.count(1)
        self._latest: Dict[str, int] = {}
        self._published: Dict[str, PublishedResult] = {}

    def begin(self, visualization_id: str) -> int:
        ticket = next(self._tickets)
        self._latest[visualization_id] = ticket
        return ticket

    def is_current(self, visualization_id: str, ticket: int) -> bool:
        return self._latest.get(visualization_id) == ticket

    def publish(
        self,
        visualization_id: str,
        ticket: int,
        rows: Iterable[Row],
        key: Iterable[str] = (),
    ) -> bool:
        """Store the rows if ``ticket`` is still the newest cycle. Returns whether it was stored."""
        if not self.is_current(visualization_id, ticket):
            logger.info("Discarding superseded cycle %d for %s", ticket, visualization_id)
            return False
        self._published[visualization_id] = PublishedResult(
            visualization_id=visualization_id,
            ticket=ticket,
            rows=tuple(rows),
            key=tuple(key),
            published_at=datetime.utcnow(),
        )
        return True

    def get(self, visualization_id: str) -> Optional[PublishedResult]:
        return self._published.get(visualization_id)


class VisualizationPipeline:
    def __init__(
        self,
        documents: DocumentStore,
        dispatcher: QueryDispatcher,
        results: Optional[ResultStore] = None,
        max_join_depth: int = settings.MAX_JOIN_DEPTH,
    ):
        self.documents = documents
        self.dispatcher = dispatcher
        self.results = results or ResultStore()
        self.max_join_depth = max_join_depth

    # ------------------------------------------------------------------
    # Dereferencing
    # ------------------------------------------------------------------

    async def _require(self, namespace: str, document_id: str) -> Dict[str, Any]:
        document = await self.documents.get(namespace, document_id)
        if document is None:
            raise DocumentNotFoundError(namespace, document_id)
        return document

    async def _load_queries(self, query_ids: Iterable[str]) -> Dict[str, DataQuery]:
        """Load data queries and, level by level, every query their joinTo chains reach."""
        queries: Dict[str, DataQuery] = {}
        pending = list(dict.fromkeys(query_ids))
        while pending:
            documents = await asyncio.gather(
                *(self._require(VISUALIZATION_QUERIES, query_id) for query_id in pending)
            )
            for document in documents:
                query = DataQuery.model_validate(document)
                queries[query.id] = query
            pending = list(dict.fromkeys(
                q.join_to for q in queries.values() if q.join_to and q.join_to not in queries
            ))
        return queries

    async def _load_data_sources(self, source_ids: Iterable[str]) -> Dict[str, DataSource]:
        ids = list(dict.fromkeys(source_ids))
        documents = await asyncio.gather(*(self.documents.get(DATA_SOURCES, i) for i in ids))
        sources = {}
        for source_id, document in zip(ids, documents):
            if document is None:
                logger.warning("Data source %s not found", source_id)
                continue
            sources[source_id] = DataSource.model_validate(document)
        return sources

    def _resolve_query(
        self,
        query_id: str,
        queries: Mapping[str, DataQuery],
        sources: Mapping[str, DataSource],
        chain: Tuple[str, ...] = (),
    ) -> ResolvedDataQuery:
        if query_id in chain:
            raise JoinCycleError(f"joinTo cycle: {' -> '.join(chain + (query_id,))}")
        if len(chain) > self.max_join_depth:
            raise JoinDepthError(
                f"joinTo chain {' -> '.join(chain)} exceeds {self.max_join_depth} levels"
            )
        query = queries[query_id]
        join_to = None
        if query.join_to:
            join_to = self._resolve_query(query.join_to, queries, sources, chain + (query_id,))
        return ResolvedDataQuery(
            **query.model_dump(exclude={"data_source", "join_to"}),
            data_source=sources.get(query.data_source) if query.data_source else None,
            join_to=join_to,
        )

    async def dereference(self, visualization: Visualization) -> ResolvedVisualization:
        """
        Replace indicator, data query and data source ids with the documents they name.

        Raises:
            DocumentNotFoundError: an indicator or data query is missing
            JoinCycleError / JoinDepthError: a joinTo chain loops or is too deep
        """
        documents = await asyncio.gather(
            *(self._require(INDICATORS, indicator_id) for indicator_id in visualization.indicators)
        )
        indicators = [Indicator.model_validate(document) for document in documents]

        query_ids = [
            query_id
            for indicator in indicators
            for query_id in (indicator.numerator, indicator.denominator)
            if query_id
        ]
        queries = await self._load_queries(query_ids)
        sources = await self._load_data_sources(
            q.data_source for q in queries.values() if q.data_source
        )

        resolved = []
        for indicator in indicators:
            resolved.append(ResolvedIndicator(
                **indicator.model_dump(exclude={"numerator", "denominator"}),
                numerator=self._resolve_query(indicator.numerator, queries, sources)
                if indicator.numerator else None,
                denominator=self._resolve_query(indicator.denominator, queries, sources)
                if indicator.denominator else None,
            ))
        return ResolvedVisualization(
            **visualization.model_dump(exclude={"indicators"}),
            indicators=resolved,
        )

    # ------------------------------------------------------------------
    # Executing, computing, publishing
    # ------------------------------------------------------------------

    def cycle_key(
        self,
        visualization: ResolvedVisualization,
        global_filters: GlobalFilters,
        other_filters: Optional[Mapping[str, Any]] = None,
    ) -> List[str]:
        filters = global_filters.with_overrides(visualization.overrides)
        key = [visualization.id]
        key += [indicator.id for indicator in visualization.indicators]
        key += cycle_key(visualization.indicators, filters)
        key += [str(v) for v in (other_filters or {}).values()]
        key.append(definition_digest(visualization))
        return key

    async def run(
        self,
        visualization: ResolvedVisualization,
        global_filters: GlobalFilters,
        other_filters: Optional[Mapping[str, Any]] = None,
        ticket: Optional[int] = None,
    ) -> List[Row]:
        """
        Run every indicator of a resolved visualization and publish the rows.

        Rows come out in the declared indicator order regardless of which
        query settles first. Errors propagate and nothing is published.
        """
        if ticket is None:
            ticket = self.results.begin(visualization.id)
        filters = global_filters.with_overrides(visualization.overrides)
        results = await asyncio.gather(*(
            query_indicator(self.dispatcher, indicator, filters, other_filters)
            for indicator in visualization.indicators
        ))
        rows: List[Row] = []
        for result in results:
            if result is None:
                continue
            if isinstance(result, list):
                rows.extend(result)
            else:
                rows.append(result)
        self.results.publish(
            visualization.id, ticket, rows, self.cycle_key(visualization, global_filters, other_filters)
        )
        return rows

    async def refresh(
        self,
        visualization: Visualization,
        global_filters: GlobalFilters,
        other_filters: Optional[Mapping[str, Any]] = None,
        force: bool = False,
    ) -> PublishedResult:
        """
        One full cycle for a stored visualization, guarded.

        Failures are logged and the last published result is returned
        unchanged. Unless ``force`` is set, a cycle whose key matches the
        published key returns the published rows without querying.
        """
        ticket = self.results.begin(visualization.id)
        try:
            resolved = await self.dereference(visualization)
            published = self.results.get(visualization.id)
            key = tuple(self.cycle_key(resolved, global_filters, other_filters))
            if not force and published is not None and published.key == key:
                logger.debug("Visualization %s unchanged, serving published rows", visualization.id)
                return published
            await self.run(resolved, global_filters, other_filters, ticket=ticket)
        except Exception:
            logger.exception("Refreshing visualization %s failed; keeping previous result", visualization.id)
        return self.results.get(visualization.id) or PublishedResult(visualization.id)


class RefreshScheduler:
    """Re-runs visualization cycles on a fixed interval, one task per visualization."""

    def __init__(self, pipeline: VisualizationPipeline):
        self.pipeline = pipeline
        self._tasks: Dict[str, asyncio.Task] = {}

    def scheduled(self) -> Set[str]:
        return {vid for vid, task in self._tasks.items() if not task.done()}

    def schedule(
        self,
        visualization: Visualization,
        global_filters: GlobalFilters,
        other_filters: Optional[Mapping[str, Any]] = None,
        interval: Optional[float] = None,
    ) -> bool:
        """
        (Re)start periodic refreshing. Must be called from a running event loop.

        Returns:
            False when neither ``interval`` nor the visualization's refreshInterval is set
        """
        self.cancel(visualization.id)
        seconds = interval or visualization.refresh_seconds
        if not seconds:
            return False
        self._tasks[visualization.id] = asyncio.create_task(
            self._loop(visualization, global_filters, other_filters, seconds),
            name=f"refresh-{visualization.id}",
        )
        logger.info("Refreshing %s every %ss", visualization.id, seconds)
        return True

    async def _loop(self, visualization, global_filters, other_filters, seconds: float) -> None:
        while True:
            await self.pipeline.refresh(visualization, global_filters, other_filters, force=True)
            await asyncio.sleep(seconds)

    def cancel(self, visualization_id: str) -> bool:
        task = self._tasks.pop(visualization_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def get_pipeline() -> VisualizationPipeline:
    """FastAPI dependency returning the process-wide pipeline."""
    global _pipeline
    if _pipeline is None:
        _pipeline = VisualizationPipeline(
            get_document_store(),
            QueryDispatcher(host_client=get_dhis2_client()),
        )
    return _pipeline


def get_scheduler(pipeline: Optional[VisualizationPipeline] = None) -> RefreshScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = RefreshScheduler(pipeline or get_pipeline())
    return _scheduler


async def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        await _scheduler.shutdown()
        _scheduler = None
