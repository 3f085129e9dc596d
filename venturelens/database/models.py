import datetime
import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from venturelens.database.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Startup(Base):
    """
    ORM mapping for the `startups` table.

    One row per founder submission. A re-submission inserts a fresh row;
    earlier rows are left as they were.
    """
    __tablename__ = "startups"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)

    name = Column(String(100), nullable=False)
    description = Column(Text)
    industry = Column(String)
    stage = Column(String)
    website_url = Column(String)
    linkedin_url = Column(String)
    funding_raised = Column(String)

    # Supabase-auth user that submitted the deck
    founder_id = Column(String, nullable=False, index=True)

    # Public URL + bucket path of the uploaded pitch deck
    deck_url = Column(String)
    deck_storage_path = Column(String)

    # Normalized analysis
    ai_score = Column(Integer, nullable=False, default=0)
    trust_signal = Column(String, nullable=False, default="weak")
    scores = Column(JSONType)
    reasoning = Column(JSONType)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)

    anomalies = relationship(
        "StartupAnomaly",
        back_populates="startup",
        cascade="all, delete-orphan",
        order_by="StartupAnomaly.created_at",
    )

    def __repr__(self):
        return f"<Startup id={self.id} name={self.name!r} ai_score={self.ai_score}>"


class StartupAnomaly(Base):
    """
    ORM mapping for `startup_anomalies`.

    `type` is the alert bucket investors filter on: critical | warning | verified.
    """
    __tablename__ = "startup_anomalies"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    startup_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("startups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Identifier assigned by the anomaly-detection workflow
    external_id = Column(String)

    type = Column(String, nullable=False, default="warning")
    message = Column(Text, nullable=False, default="")

    category = Column(String)
    priority = Column(String)
    title = Column(String)
    description = Column(Text)
    deck_claim = Column(Text)
    website_claim = Column(Text)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)

    startup = relationship("Startup", back_populates="anomalies")

    def __repr__(self):
        return f"<StartupAnomaly id={self.id} startup_id={self.startup_id} type={self.type}>"
