"""
Data source dispatch: runs a resolved data query against its backend.

Backends by DataSourceType:
- DHIS2: the host instance client, or an external instance over basic auth;
  responses are normalized into rows
- API: GET on the configured URL, raw body (optionally narrowed by ``accessor``)
- INDEX_DB: every event row in the offline cache
- ELASTICSEARCH: the stored search body with global filters substituted, POSTed

A query's joinTo chain is executed first, one level at a time. Errors
propagate to the caller; nothing here retries.
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

import httpx
from sqlalchemy.orm import Session

from idvt.config import settings
from idvt.db.dhis2 import Dhis2Client
from idvt.db.session import SessionLocal
from idvt.schemas.query import DataSourceType, ResolvedDataQuery
from idvt.services import global_filters as gf
from idvt.services.errors import JoinDepthError
from idvt.services.normalizer import process_dhis2_data
from idvt.services.offline_cache import OfflineCache
from idvt.services.query_builder import build_query

logger = logging.getLogger(__name__)

Filters = Mapping[str, Sequence[str]]

# Placeholder -> reserved global filter id, for search request templates
SEARCH_PLACEHOLDERS = {
    "${ou}": gf.ORGANISATION_UNIT,
    "${pe}": gf.PERIOD,
    "${le}": gf.LEVEL,
    "${gp}": gf.ORGANISATION_UNIT_GROUP,
}


def extract_path(data: Any, accessor: Optional[str]) -> Any:
    """Follow a dotted path ("data.rows.0") into decoded JSON; None when it leads nowhere."""
    if not accessor:
        return data
    current = data
    for part in accessor.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
        if current is None:
            return None
    return current


def fill_search_template(template: str, global_filters: Filters) -> Dict[str, Any]:
    """Substitute ${ou}, ${pe}, ${le} and ${gp} in a search body and parse it."""
    body = template
    for placeholder, global_id in SEARCH_PLACEHOLDERS.items():
        body = body.replace(placeholder, "-".join(global_filters.get(global_id, ())))
    return json.loads(body)


def _basic_auth(query: ResolvedDataQuery) -> Optional[httpx.BasicAuth]:
    authentication = query.data_source.authentication
    if authentication.username and authentication.password:
        return httpx.BasicAuth(authentication.username, authentication.password)
    return None


class QueryDispatcher:
    """Executes resolved data queries; one handler per DataSourceType."""

    def __init__(
        self,
        host_client: Optional[Dhis2Client] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        max_join_depth: int = settings.MAX_JOIN_DEPTH,
        timeout: float = settings.HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.host_client = host_client
        self.session_factory = session_factory
        self.max_join_depth = max_join_depth
        self.timeout = timeout
        self.transport = transport
        self.handlers: Dict[DataSourceType, Callable[..., Awaitable[Any]]] = {
            DataSourceType.DHIS2: self._query_dhis2,
            DataSourceType.API: self._query_api,
            DataSourceType.INDEX_DB: self._query_index_db,
            DataSourceType.ELASTICSEARCH: self._query_search,
        }
        missing = set(DataSourceType) - set(self.handlers)
        if missing:
            raise RuntimeError(f"No handler for data sources {sorted(t.value for t in missing)}")

    async def execute(
        self,
        query: Optional[ResolvedDataQuery],
        global_filters: Filters,
        other_filters: Optional[Mapping[str, Any]] = None,
        depth: int = 0,
    ) -> Any:
        """
        Run a data query and its join chain.

        Args:
            query: Fully resolved data query (None yields None)
            global_filters: Filter snapshot for this cycle
            other_filters: Column filters applied to normalized DHIS2 rows
            depth: Current joinTo depth

        Returns:
            Rows for DHIS2 and INDEX_DB sources, the raw body for API and
            ELASTICSEARCH, None when there is nothing to run
        """
        if query is None:
            return None
        if depth > self.max_join_depth:
            raise JoinDepthError(
                f"joinTo chain from {query.id} exceeds {self.max_join_depth} levels"
            )
        join_data = None
        if query.join_to is not None:
            join_data = await self.execute(query.join_to, global_filters, other_filters, depth + 1)
        if query.data_source is None:
            logger.warning("Query %s has no data source", query.id)
            return None
        handler = self.handlers[query.data_source.type]
        return await handler(query, global_filters, other_filters or {}, join_data)

    async def _query_dhis2(self, query, global_filters, other_filters, join_data):
        path = build_query(query, global_filters)
        if not path:
            return None
        data_source = query.data_source
        if data_source.is_current_dhis2:
            if self.host_client is None:
                raise RuntimeError("Query targets the host DHIS2 but DHIS2_URL is not configured")
            logger.debug("Host DHIS2 query %s: %s", query.id, path)
            data = await self.host_client.get(path)
        else:
            authentication = data_source.authentication
            logger.debug("External DHIS2 query %s: %s/api/%s", query.id, authentication.url, path)
            async with Dhis2Client(
                authentication.url,
                username=authentication.username,
                password=authentication.password,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                data = await client.get(path)
        return process_dhis2_data(
            data,
            flattening_option=query.flattening_option,
            join_data=join_data,
            from_column=query.from_column,
            to_column=query.to_column,
            from_first=query.from_first,
            other_filters=other_filters,
        )

    async def _query_api(self, query, global_filters, other_filters, join_data):
        url = query.data_source.authentication.url
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(url, auth=_basic_auth(query))
            response.raise_for_status()
            return extract_path(response.json(), query.accessor)

    def _scan_offline_events(self):
        with self.session_factory() as db:
            return OfflineCache(db).all_events()

    async def _query_index_db(self, query, global_filters, other_filters, join_data):
        return await asyncio.to_thread(self._scan_offline_events)

    async def _query_search(self, query, global_filters, other_filters, join_data):
        if not query.query:
            return None
        body = fill_search_template(query.query, global_filters)
        url = query.data_source.authentication.url
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, json=body, auth=_basic_auth(query))
            response.raise_for_status()
            return response.json()
