"""Seed bookkeeping: content hash of the templates last built."""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base, TimestampMixin


class SeedMetadata(TimestampMixin, Base):
    __tablename__ = "seed_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    hash: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[str] = mapped_column(String(20), nullable=False)
