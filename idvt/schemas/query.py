"""Pydantic schemas for data sources, data queries, indicators and visualizations.

Documents are stored camelCase (``dataDimensions``, ``isCurrentDHIS2``); every
model accepts the aliases and the snake_case field names. Dump with
``by_alias=True`` when writing back to the document store.
"""
import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class QueryType(str, enum.Enum):
    ANALYTICS = "ANALYTICS"
    SQL_VIEW = "SQL_VIEW"
    API = "API"


class DataSourceType(str, enum.Enum):
    DHIS2 = "DHIS2"
    API = "API"
    INDEX_DB = "INDEX_DB"
    ELASTICSEARCH = "ELASTICSEARCH"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Authentication(CamelModel):
    url: str = ""
    username: str = ""
    password: str = ""


class DataSource(CamelModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    type: DataSourceType = DataSourceType.DHIS2
    is_current_dhis2: bool = Field(default=True, alias="isCurrentDHIS2")
    authentication: Authentication = Field(default_factory=Authentication)

    @field_validator("authentication", mode="before")
    @classmethod
    def empty_authentication(cls, v):
        return {} if v is None else v


class DataDimension(CamelModel):
    resource: str = ""
    type: str = ""
    dimension: str = ""
    prefix: Optional[str] = None


class Expression(CamelModel):
    value: Any = ""
    is_global: bool = False


class DataQueryBase(CamelModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    type: QueryType = Field(default=QueryType.ANALYTICS, frozen=True)
    data_dimensions: Dict[str, DataDimension] = Field(default_factory=dict)
    expressions: Dict[str, Expression] = Field(default_factory=dict)
    query: Optional[str] = None  # SQL view text or API path
    from_column: Optional[str] = None
    to_column: Optional[str] = None
    from_first: bool = False
    flattening_option: Optional[str] = None
    accessor: Optional[str] = None  # dotted path into an API response

    @field_validator("data_dimensions", "expressions", mode="before")
    @classmethod
    def empty_mapping(cls, v):
        return {} if v is None else v


class DataQuery(DataQueryBase):
    """Stored form: the data source and join target are referenced by id."""
    data_source: Optional[str] = None
    join_to: Optional[str] = None


class ResolvedDataQuery(DataQueryBase):
    """Runtime form with the data source and the join chain embedded."""
    data_source: Optional[DataSource] = None
    join_to: Optional["ResolvedDataQuery"] = None


class IndicatorBase(CamelModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    query: Optional[str] = None
    factor: str = "1"
    custom: bool = False

    @field_validator("factor", mode="before")
    @classmethod
    def factor_as_text(cls, v):
        if v is None or v == "":
            return "1"
        return str(v)


class Indicator(IndicatorBase):
    numerator: Optional[str] = None
    denominator: Optional[str] = None


class ResolvedIndicator(IndicatorBase):
    numerator: Optional[ResolvedDataQuery] = None
    denominator: Optional[ResolvedDataQuery] = None


class VisualizationBase(CamelModel):
    id: str
    name: Optional[str] = None
    type: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)
    overrides: Dict[str, Any] = Field(default_factory=dict)
    refresh_interval: Optional[str] = "off"

    @field_validator("refresh_interval", mode="before")
    @classmethod
    def interval_as_text(cls, v):
        return None if v is None else str(v)

    @property
    def refresh_seconds(self) -> Optional[float]:
        """Refresh period in seconds, or None when refreshing is off."""
        if not self.refresh_interval or self.refresh_interval == "off":
            return None
        return float(self.refresh_interval)


class Visualization(VisualizationBase):
    indicators: List[str] = Field(default_factory=list)


class ResolvedVisualization(VisualizationBase):
    indicators: List[ResolvedIndicator] = Field(default_factory=list)
