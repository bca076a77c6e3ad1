"""SQLAlchemy table for defects and engine/session creation."""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class DefectRow(Base):
    __tablename__ = "defects"

    org: Mapped[str] = mapped_column(String(128), primary_key=True)
    number: Mapped[str] = mapped_column(String(64), primary_key=True)
    repo: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    title: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    status: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    component: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    component_version: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    kernel: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    system_version: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    influence: Mapped[str] = mapped_column(Text, nullable=False, default="")
    root_cause: Mapped[str] = mapped_column(Text, nullable=False, default="")
    severity_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reference_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    guidance_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    affected_version: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    fixed_version: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    unpublished_version: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    abi: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


def create_db_engine(url: str):
    """Create a SQLAlchemy engine; in-memory SQLite shares one connection."""
    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def create_session_factory(engine) -> sessionmaker:
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine) -> None:
    Base.metadata.create_all(engine)
