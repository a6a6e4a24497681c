"""
Offline cache routes: pull events, organisation units and themes from the
host DHIS2 into the local database.
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from idvt.api.deps import dhis2_client
from idvt.db.dhis2 import Dhis2Client
from idvt.db.session import get_db
from idvt.schemas.visualization_data import SyncResponse
from idvt.services.offline_cache import OfflineCache

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/offline/sync/events", response_model=SyncResponse)
async def sync_events(
    program_stage: str = Query(..., alias="programStage"),
    client: Dhis2Client = Depends(dhis2_client),
    db: Session = Depends(get_db),
):
    """Cache every event of a program stage"""
    synced = await OfflineCache(db).sync_events(client, program_stage)
    return SyncResponse(synced=synced)


@router.post("/offline/sync/organisations", response_model=SyncResponse)
async def sync_organisations(
    client: Dhis2Client = Depends(dhis2_client),
    db: Session = Depends(get_db),
):
    synced = await OfflineCache(db).sync_organisations(client)
    return SyncResponse(synced=synced)


@router.post("/offline/sync/themes/{option_set_id}", response_model=SyncResponse)
async def sync_themes(
    option_set_id: str,
    client: Dhis2Client = Depends(dhis2_client),
    db: Session = Depends(get_db),
):
    """Cache the options of an option set as themes (skipped once themes exist)"""
    synced = await OfflineCache(db).sync_themes(client, option_set_id)
    return SyncResponse(synced=synced)


@router.get("/offline/events", response_model=List[Dict[str, Any]])
def list_events(db: Session = Depends(get_db)):
    return OfflineCache(db).all_events()
