"""Dish and DishEvent ORM models."""

from sqlalchemy import (
    Column, BigInteger, Boolean, String, Text,
    ForeignKey, Index, UniqueConstraint, false,
)

from foodlog.database import Base


class Dish(Base):
    """
    A user's canonical, deduplicated dish.

    (user_id, normalized_dish_name) is unique; the constraint is what turns a
    concurrent find-or-create race into a retryable IntegrityError.
    dish_name is a mutable display attribute shared by every DishEvent.
    """

    __tablename__ = "dish"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False)
    dish_name = Column(Text, nullable=False)
    normalized_dish_name = Column(Text, nullable=False)
    # Reserved for semantic matching; always NULL for now
    dish_embedding_id = Column(String(36), nullable=True)
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "normalized_dish_name", name="dish_user_name_unique"),
        Index("idx_dish_user_id", "user_id"),
    )


class DishEvent(Base):
    """
    One occurrence of eating a Dish, from one RawEntry.
    Never hard-deleted: deleted_at marks a soft delete.
    """

    __tablename__ = "dish_events"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False)
    dish_id = Column(
        String(36),
        ForeignKey("dish.id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL when the dish was added manually during confirmation
    predicted_dish_id = Column(
        String(36),
        ForeignKey("predicted_dish.id", ondelete="SET NULL"),
        nullable=True,
    )
    raw_entry_id = Column(
        String(36),
        ForeignKey("raw_entry.id", ondelete="CASCADE"),
        nullable=False,
    )
    confirmed_by_user = Column(Boolean, nullable=False, default=False, server_default=false())
    deleted_at = Column(BigInteger, nullable=True)
    occurred_at = Column(BigInteger, nullable=False)   # when the meal was eaten
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_dish_events_dish_id", "dish_id"),
        Index("idx_dish_events_raw_entry_id", "raw_entry_id"),
        Index("idx_dish_events_user_active", "user_id", "confirmed_by_user", "deleted_at"),
        Index("idx_dish_events_occurred_at", "occurred_at"),
    )
