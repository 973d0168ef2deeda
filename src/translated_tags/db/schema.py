# translated_tags.db.schema
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()


class Attribute(Base):
    __tablename__ = "ATTRIBUTES"

    id: Mapped[int] = mapped_column(primary_key=True)
    model_table: Mapped[str] = mapped_column()
    col_name: Mapped[str] = mapped_column()
    type: Mapped[str] = mapped_column(server_default="translatedtags")
    created_at: Mapped[datetime | None] = mapped_column(DateTime, server_default=func.now(), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, server_default=func.now(), nullable=True)

    settings: Mapped[list[AttributeSetting]] = relationship(
        "AttributeSetting",
        back_populates="attribute",
        cascade="all, delete-orphan",
    )

    __table_args__ = (UniqueConstraint("model_table", "col_name", name="uix_model_col"),)


class AttributeSetting(Base):
    __tablename__ = "ATTRIBUTE_SETTINGS"

    att_id: Mapped[int] = mapped_column(ForeignKey("ATTRIBUTES.id"), primary_key=True)
    key: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[str | None] = mapped_column(nullable=True)

    attribute: Mapped[Attribute] = relationship("Attribute", back_populates="settings")


class TagRelation(Base):
    """Item to tag association. Duplicate (att_id, item_id, value_id) rows are allowed."""

    __tablename__ = "TAG_RELATION"

    id: Mapped[int] = mapped_column(primary_key=True)
    att_id: Mapped[int] = mapped_column()
    item_id: Mapped[int] = mapped_column()
    value_id: Mapped[int] = mapped_column()
    value_sorting: Mapped[int] = mapped_column(server_default="0")

    __table_args__ = (
        Index("ix_relation_att_item", "att_id", "item_id"),
        Index("ix_relation_att_value", "att_id", "value_id"),
    )
