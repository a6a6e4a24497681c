"""
Visualization routes: dereference definitions, run refresh cycles, serve
published rows and manage periodic refreshing.
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from idvt.api.deps import pipeline, scheduler
from idvt.schemas.query import Visualization
from idvt.schemas.selection import Selection
from idvt.schemas.visualization_data import (
    IndicatorScope,
    ScheduleRequest,
    VisualizationDataRequest,
    VisualizationDataResponse,
    VisualizationMetadataResponse,
)
from idvt.services.dimensions import find_levels_and_ous
from idvt.services.global_filters import GlobalFilters, build_global_filters
from idvt.services.pipeline import PublishedResult, RefreshScheduler, VisualizationPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


def _global_filters(
    selection: Optional[Selection], filters: Optional[Dict[str, List[str]]]
) -> GlobalFilters:
    """Explicit filters win over a selection; neither gives an empty snapshot."""
    if filters is not None:
        return GlobalFilters(filters)
    if selection is not None:
        return build_global_filters(selection)
    return GlobalFilters()


def _response(result: PublishedResult) -> VisualizationDataResponse:
    return VisualizationDataResponse(
        visualization_id=result.visualization_id,
        data=list(result.rows),
        key=list(result.key),
        published_at=result.published_at,
    )


@router.post("/visualizations/metadata", response_model=VisualizationMetadataResponse)
async def visualization_metadata(
    visualization: Visualization,
    current: VisualizationPipeline = Depends(pipeline),
):
    """Resolve a visualization's indicators, data queries and data sources"""
    resolved = await current.dereference(visualization)
    scopes = [
        IndicatorScope(indicator_id=indicator.id, **find_levels_and_ous(indicator))
        for indicator in resolved.indicators
    ]
    return VisualizationMetadataResponse(visualization=resolved, scopes=scopes)


@router.post("/visualizations/data", response_model=VisualizationDataResponse)
async def visualization_data(
    request: VisualizationDataRequest,
    current: VisualizationPipeline = Depends(pipeline),
):
    """
    Run one refresh cycle and return the published rows.
    A failed cycle returns the previously published rows.
    """
    result = await current.refresh(
        request.visualization,
        _global_filters(request.selection, request.filters),
        request.other_filters,
        force=request.force,
    )
    return _response(result)


@router.get("/visualizations/{visualization_id}/data", response_model=VisualizationDataResponse)
async def published_data(
    visualization_id: str,
    current: VisualizationPipeline = Depends(pipeline),
):
    result = current.results.get(visualization_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Nothing published for visualization {visualization_id}",
        )
    return _response(result)


@router.post("/visualizations/{visualization_id}/schedule", status_code=status.HTTP_202_ACCEPTED)
async def schedule_refresh(
    visualization_id: str,
    request: ScheduleRequest,
    refresher: RefreshScheduler = Depends(scheduler),
):
    """Refresh a visualization periodically until cancelled"""
    if request.visualization.id != visualization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Visualization id does not match the path",
        )
    scheduled = refresher.schedule(
        request.visualization,
        _global_filters(request.selection, request.filters),
        request.other_filters,
        interval=request.interval_seconds,
    )
    if not scheduled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Visualization has no refresh interval",
        )
    return {
        "visualizationId": visualization_id,
        "interval": request.interval_seconds or request.visualization.refresh_seconds,
    }


@router.delete("/visualizations/{visualization_id}/schedule", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_refresh(
    visualization_id: str,
    refresher: RefreshScheduler = Depends(scheduler),
):
    if not refresher.cancel(visualization_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Visualization {visualization_id} is not scheduled",
        )
