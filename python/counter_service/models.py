"""Database models for the counter service."""

from datetime import datetime

from sqlalchemy import TIMESTAMP, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Counter(Base):
    """A named integer that only ever moves up by one."""

    __tablename__ = "counters"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    # Writers refresh this explicitly; see CounterRepository.
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=func.current_timestamp()
    )

    def __repr__(self) -> str:
        return f"<Counter(id={self.id}, value={self.value})>"
