"""
Organisation unit boundaries for map visualizations.
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from idvt.api.deps import dhis2_client
from idvt.db.dhis2 import Dhis2Client

router = APIRouter()


@router.get("/maps/geojson")
async def organisation_unit_geojson(
    levels: List[str] = Query(default=[], alias="level"),
    parents: List[str] = Query(default=[], alias="parent"),
    client: Dhis2Client = Depends(dhis2_client),
):
    """GeoJSON FeatureCollection for the children of ``parent`` at each ``level``"""
    return await client.organisation_unit_geojson(levels, parents)
