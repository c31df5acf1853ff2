"""
Database Models

SQLAlchemy ORM models for the shared case store.

Every case-owned table references ``cases.id`` with ``ON DELETE CASCADE`` so
that deleting a case row removes its evidence, chat and audit trail in the
store itself.

Evidence ids come from upstream extractions and repeat across cases, so the
evidence tables are keyed on ``(case_id, id)``. Everything else is keyed on a
globally unique ``id``.
"""

from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


def _case_fk(primary_key=False):
    # As the leading primary key column case_id needs no separate index
    return Column(
        String(100),
        ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=False,
        primary_key=primary_key,
        index=not primary_key,
    )


class CaseDB(Base):
    """Case metadata"""

    __tablename__ = "cases"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    device = Column(String(255), nullable=True)
    owner = Column(String(255), nullable=True)
    extraction_date = Column(DateTime(timezone=True), nullable=True, index=True)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<CaseDB(id='{self.id}', name='{self.name}')>"


class CallDB(Base):
    __tablename__ = "evidence_calls"

    case_id = _case_fk(primary_key=True)
    id = Column(String(255), primary_key=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    from_party = Column(String(100), nullable=False)
    to_party = Column(String(100), nullable=False)
    duration = Column(Integer, nullable=False, default=0)
    type = Column(String(20), nullable=False)


class MessageDB(Base):
    __tablename__ = "evidence_messages"

    case_id = _case_fk(primary_key=True)
    id = Column(String(255), primary_key=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    from_party = Column(String(100), nullable=False)
    to_party = Column(String(100), nullable=False)
    content = Column(Text, nullable=True)
    app = Column(String(20), nullable=False)


class LocationDB(Base):
    __tablename__ = "evidence_locations"

    case_id = _case_fk(primary_key=True)
    id = Column(String(255), primary_key=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    label = Column(String(255), nullable=True)


class MediaDB(Base):
    """Media evidence; ``url`` is Text to hold long signed or inline URLs"""

    __tablename__ = "evidence_media"

    case_id = _case_fk(primary_key=True)
    id = Column(String(255), primary_key=True)
    timestamp = Column(DateTime(timezone=True), nullable=True, index=True)
    type = Column(String(20), nullable=True)
    file_name = Column(String(255), nullable=True)
    url = Column(Text, nullable=True)
    size = Column(String(50), nullable=True)
    mime_type = Column(String(100), nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    comments = Column(JSON, nullable=True)


class TeamMessageDB(Base):
    __tablename__ = "team_messages"

    id = Column(String(100), primary_key=True)
    case_id = _case_fk()
    sender_id = Column(String(100), nullable=False)
    content = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="text")
    file_name = Column(String(255), nullable=True)


class ActivityLogDB(Base):
    __tablename__ = "activity_logs"

    id = Column(String(100), primary_key=True)
    case_id = _case_fk()
    user_id = Column(String(100), nullable=False)
    user_name = Column(String(255), nullable=True)
    action = Column(String(255), nullable=False)
    target = Column(String(255), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    type = Column(String(20), nullable=False)


class OfficerDB(Base):
    __tablename__ = "officers"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    role = Column(String(100), nullable=True)
    avatar = Column(Text, nullable=True)
    online = Column(Boolean, nullable=False, default=False)


class AIInsightDB(Base):
    __tablename__ = "ai_insights"

    id = Column(String(100), primary_key=True)
    case_id = _case_fk()
    type = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    generated_by = Column(String(100), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)


class AIChatLogDB(Base):
    __tablename__ = "ai_chat_logs"

    id = Column(String(100), primary_key=True)
    case_id = _case_fk()
    role = Column(String(20), nullable=False)
    text = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)


TABLES = {model.__tablename__: model.__table__ for model in (
    CaseDB,
    CallDB,
    MessageDB,
    LocationDB,
    MediaDB,
    TeamMessageDB,
    ActivityLogDB,
    OfficerDB,
    AIInsightDB,
    AIChatLogDB,
)}
