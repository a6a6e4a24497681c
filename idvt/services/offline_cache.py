"""
Local offline cache: events, organisation units and themes pulled from DHIS2
and kept in the local database. The INDEX_DB data source reads events from here.
"""
import logging
import uuid
from typing import Any, Dict, Iterable, List

from sqlalchemy.orm import Session

from idvt.db.dhis2 import Dhis2Client
from idvt.models.offline import OfflineEvent, OfflineOrganisation, OfflineTheme

logger = logging.getLogger(__name__)


class OfflineCache:
    def __init__(self, db: Session):
        self.db = db

    def put_events(self, rows: Iterable[Dict[str, Any]], program_stage: str = None) -> int:
        """Upsert event rows by event uid. Returns the number of rows written."""
        count = 0
        for row in rows:
            event_id = row.get("event") or row.get("id") or str(uuid.uuid4())
            self.db.merge(OfflineEvent(id=event_id, program_stage=program_stage, payload=dict(row)))
            count += 1
        self.db.commit()
        return count

    def all_events(self) -> List[Dict[str, Any]]:
        return [event.payload for event in self.db.query(OfflineEvent).order_by(OfflineEvent.id).all()]

    def put_organisations(self, units: Iterable[Dict[str, Any]]) -> int:
        count = 0
        for unit in units:
            self.db.merge(OfflineOrganisation(
                id=unit["id"],
                parent_id=unit.get("pId") or None,
                title=unit.get("name") or unit.get("title") or unit["id"],
                is_leaf=bool(unit.get("leaf", unit.get("isLeaf", False))),
            ))
            count += 1
        self.db.commit()
        return count

    def all_organisations(self) -> List[OfflineOrganisation]:
        return self.db.query(OfflineOrganisation).order_by(OfflineOrganisation.title).all()

    def put_themes(self, options: Iterable[Dict[str, Any]]) -> int:
        count = 0
        for option in options:
            self.db.merge(OfflineTheme(id=option["code"], title=option["name"], parent_id=None))
            count += 1
        self.db.commit()
        return count

    def all_themes(self) -> List[OfflineTheme]:
        return self.db.query(OfflineTheme).order_by(OfflineTheme.id).all()

    async def sync_events(self, client: Dhis2Client, program_stage: str) -> int:
        """
        Page through ``events/query.json`` for a program stage until an empty page.

        Returns:
            Total number of events cached
        """
        total = 0
        page = 1
        while True:
            data = await client.get(
                "events/query.json",
                params={"programStage": program_stage, "ouMode": "ALL", "page": page},
            )
            names = [header["name"] for header in data["headers"]]
            rows = [dict(zip(names, row)) for row in data["rows"]]
            if not rows:
                break
            total += self.put_events(rows, program_stage=program_stage)
            page += 1
        logger.info("Cached %d events for program stage %s", total, program_stage)
        return total

    async def sync_organisations(self, client: Dhis2Client) -> int:
        """Cache the organisation units assigned to the current user."""
        me = await client.get("me.json", params={"fields": "organisationUnits[id,name,leaf,level]"})
        return self.put_organisations(me.get("organisationUnits", []))

    async def sync_themes(self, client: Dhis2Client, option_set_id: str) -> int:
        """Cache the options of an option set as themes, unless themes are already cached."""
        if self.db.query(OfflineTheme).first() is not None:
            return 0
        data = await client.get(f"optionSets/{option_set_id}.json", params={"fields": "options[name,code]"})
        return self.put_themes(data.get("options", []))
