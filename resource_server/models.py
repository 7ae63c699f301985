"""
SQLAlchemy models for the resource server: two read-only tables of text contents.
"""
from datetime import datetime

from sqlalchemy import DateTime, Integer, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PublicInfo(Base):
    __tablename__ = "PUBLIC_INFO"

    resource_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contents: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Set by the database on insert
    create_dt: Mapped[datetime | None] = mapped_column(DateTime, server_default=func.current_timestamp())

    def __repr__(self) -> str:
        return f"PublicInfo(resource_id={self.resource_id!r}, contents={self.contents!r}, create_dt={self.create_dt!r})"


class SecretInfo(Base):
    __tablename__ = "SECRET_INFO"

    resource_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contents: Mapped[str | None] = mapped_column(Text, nullable=True)
    create_dt: Mapped[datetime | None] = mapped_column(DateTime, server_default=func.current_timestamp())

    def __repr__(self) -> str:
        return f"SecretInfo(resource_id={self.resource_id!r}, contents={self.contents!r}, create_dt={self.create_dt!r})"
