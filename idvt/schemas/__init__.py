"""Pydantic schemas"""
from idvt.schemas.query import (
    DataSource,
    DataSourceType,
    DataQuery,
    Indicator,
    QueryType,
    ResolvedDataQuery,
    ResolvedIndicator,
    ResolvedVisualization,
    Visualization,
)
from idvt.schemas.selection import Selection

__all__ = [
    "DataSource",
    "DataSourceType",
    "DataQuery",
    "Indicator",
    "QueryType",
    "ResolvedDataQuery",
    "ResolvedIndicator",
    "ResolvedVisualization",
    "Visualization",
    "Selection",
]
