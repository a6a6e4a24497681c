"""Request and response bodies for the visualization, offline and map routes."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from idvt.schemas.query import CamelModel, ResolvedVisualization, Visualization
from idvt.schemas.selection import Selection


class VisualizationDataRequest(CamelModel):
    visualization: Visualization
    # Either a UI selection (expanded server side) or an explicit filter mapping
    selection: Optional[Selection] = None
    filters: Optional[Dict[str, List[str]]] = None
    other_filters: Dict[str, Any] = Field(default_factory=dict)
    force: bool = False


class VisualizationDataResponse(CamelModel):
    visualization_id: str
    data: List[Dict[str, Any]]
    key: List[str] = Field(default_factory=list)
    published_at: Optional[datetime] = None


class IndicatorScope(CamelModel):
    indicator_id: str
    levels: List[str]
    ous: List[str]


class VisualizationMetadataResponse(CamelModel):
    visualization: ResolvedVisualization
    scopes: List[IndicatorScope]


class ScheduleRequest(CamelModel):
    visualization: Visualization
    selection: Optional[Selection] = None
    filters: Optional[Dict[str, List[str]]] = None
    other_filters: Dict[str, Any] = Field(default_factory=dict)
    # Overrides the visualization's own refreshInterval when given
    interval_seconds: Optional[float] = Field(None, gt=0)


class SyncResponse(CamelModel):
    synced: int
