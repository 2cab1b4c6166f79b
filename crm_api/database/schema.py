from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)


def utcnow() -> datetime:
    """Naive UTC, the format every timestamp column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


metadata = MetaData()

companies = Table(
    "companies",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False, index=True),
    Column("industry", String, index=True),
    Column("website", String),
    Column("phone", String),
    Column("address", String),
    Column("city", String),
    Column("state", String),
    Column("postalCode", String),
    Column("country", String),
    Column("companySize", String),
    Column("status", String, nullable=False, default="ACTIVE", index=True),
    Column("annualRevenue", Float),
    Column("employeeCount", Integer),
    Column("isDeleted", Boolean, nullable=False, default=False, index=True),
    Column("deletedAt", DateTime),
    Column("createdAt", DateTime, nullable=False, default=utcnow, index=True),
    Column("updatedAt", DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    Column("ownerId", String, index=True),
)

contacts = Table(
    "contacts",
    metadata,
    Column("id", String, primary_key=True),
    Column("firstName", String, nullable=False),
    Column("lastName", String, nullable=False),
    Column("email", String, index=True),
    Column("phone", String),
    Column("mobilePhone", String),
    Column("jobTitle", String),
    Column("department", String),
    Column("isPrimary", Boolean, nullable=False, default=False),
    Column("preferredContact", String, nullable=False, default="EMAIL"),
    Column("status", String, nullable=False, default="ACTIVE"),
    Column("isDeleted", Boolean, nullable=False, default=False, index=True),
    Column("deletedAt", DateTime),
    Column("createdAt", DateTime, nullable=False, default=utcnow),
    Column("updatedAt", DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    Column("companyId", String, ForeignKey("companies.id", ondelete="SET NULL"), index=True),
    Column("ownerId", String, index=True),
)

pipeline_stages = Table(
    "pipeline_stages",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("description", Text),
    Column("position", Integer, nullable=False),
    Column("probability", Float, nullable=False, default=0.0),
    Column("color", String),
    Column("isActive", Boolean, nullable=False, default=True),
    Column("stageType", String, nullable=False, default="OPPORTUNITY"),
    Column("createdAt", DateTime, nullable=False, default=utcnow),
    Column("updatedAt", DateTime, nullable=False, default=utcnow, onupdate=utcnow),
)

deals = Table(
    "deals",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("description", Text),
    Column("value", Float),
    Column("currency", String, nullable=False, default="USD"),
    Column("expectedCloseDate", DateTime),
    Column("actualCloseDate", DateTime),
    Column("probability", Float),
    Column("status", String, nullable=False, default="OPEN"),
    Column("priority", String, nullable=False, default="MEDIUM"),
    Column("source", String),
    Column("isDeleted", Boolean, nullable=False, default=False, index=True),
    Column("deletedAt", DateTime),
    Column("createdAt", DateTime, nullable=False, default=utcnow),
    Column("updatedAt", DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    Column("companyId", String, ForeignKey("companies.id", ondelete="SET NULL"), index=True),
    Column("contactId", String, ForeignKey("contacts.id", ondelete="SET NULL"), index=True),
    Column("stageId", String, ForeignKey("pipeline_stages.id", ondelete="RESTRICT"), nullable=False),
    Column("ownerId", String, index=True),
)

activities = Table(
    "activities",
    metadata,
    Column("id", String, primary_key=True),
    Column("type", String, nullable=False),
    Column("subject", String, nullable=False),
    Column("description", Text),
    Column("dueDate", DateTime),
    Column("completedAt", DateTime),
    Column("duration", Integer),
    Column("status", String, nullable=False, default="PENDING"),
    Column("priority", String, nullable=False, default="MEDIUM"),
    Column("location", String),
    Column("meetingUrl", String),
    Column("isDeleted", Boolean, nullable=False, default=False, index=True),
    Column("deletedAt", DateTime),
    Column("createdAt", DateTime, nullable=False, default=utcnow),
    Column("updatedAt", DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    Column("companyId", String, ForeignKey("companies.id", ondelete="SET NULL"), index=True),
    Column("contactId", String, ForeignKey("contacts.id", ondelete="SET NULL"), index=True),
    Column("dealId", String, ForeignKey("deals.id", ondelete="SET NULL"), index=True),
    Column("ownerId", String, index=True),
    Column("assignedToId", String),
)

saved_filters = Table(
    "saved_filters",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(100), nullable=False, index=True),
    Column("description", Text),
    Column("entity", String, nullable=False, index=True),
    Column("filterConfig", JSON, nullable=False),
    Column("isPublic", Boolean, nullable=False, default=False, index=True),
    Column("useCount", Integer, nullable=False, default=0),
    Column("lastUsedAt", DateTime),
    Column("createdAt", DateTime, nullable=False, default=utcnow),
    Column("updatedAt", DateTime, nullable=False, default=utcnow),
    Column("ownerId", String, index=True),
    UniqueConstraint("name", "entity", name="saved_filters_name_entity_key"),
)


def create_all(engine) -> None:
    metadata.create_all(engine)
