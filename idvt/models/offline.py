from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON, Boolean
from idvt.db.session import Base


class OfflineEvent(Base):
    __tablename__ = "offline_events"

    id = Column(String, primary_key=True)  # DHIS2 event uid
    program_stage = Column(String, nullable=True, index=True)
    payload = Column(JSON, nullable=False)  # one flattened events/query.json row

    synced_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<OfflineEvent {self.id}>"


class OfflineOrganisation(Base):
    __tablename__ = "offline_organisations"

    id = Column(String, primary_key=True)
    parent_id = Column(String, nullable=True)
    title = Column(String, nullable=False)
    is_leaf = Column(Boolean, default=False)

    synced_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<OfflineOrganisation {self.title}>"


class OfflineTheme(Base):
    __tablename__ = "offline_themes"

    id = Column(String, primary_key=True)  # option code
    title = Column(String, nullable=False)
    parent_id = Column(String, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<OfflineTheme {self.id}: {self.title}>"
