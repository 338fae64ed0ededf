"""Trigger catalog and the predicted / confirmed trigger link tables."""

from sqlalchemy import Column, BigInteger, String, Text, ForeignKey, Index, UniqueConstraint

from foodlog.database import Base


class Trigger(Base):
    """Fixed catalog row; trigger_name comes from VALID_TRIGGER_NAMES."""

    __tablename__ = "triggers"

    id = Column(String(36), primary_key=True)
    trigger_name = Column(Text, nullable=False, unique=True)
    created_at = Column(BigInteger, nullable=False)


class PredictedDishTrigger(Base):
    """
    The oracle's guess for one DishEvent.
    Append-only. Kept untouched after confirmation as the audit record.
    """

    __tablename__ = "predicted_dish_triggers"

    id = Column(String(36), primary_key=True)
    dish_id = Column(String(36), ForeignKey("dish.id", ondelete="CASCADE"), nullable=False)
    dish_event_id = Column(
        String(36), ForeignKey("dish_events.id", ondelete="CASCADE"), nullable=False
    )
    trigger_id = Column(
        String(36), ForeignKey("triggers.id", ondelete="CASCADE"), nullable=False
    )
    model_version = Column(Text, nullable=False)
    prompt_version = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("dish_event_id", "trigger_id", name="predicted_dish_triggers_unique"),
        Index("idx_predicted_dish_triggers_dish_event_id", "dish_event_id"),
    )


class DishTrigger(Base):
    """
    User-confirmed ground truth for one DishEvent.
    The set for a dish_event_id is only ever replaced wholesale.
    """

    __tablename__ = "dish_triggers"

    id = Column(String(36), primary_key=True)
    dish_id = Column(String(36), ForeignKey("dish.id", ondelete="CASCADE"), nullable=False)
    dish_event_id = Column(
        String(36), ForeignKey("dish_events.id", ondelete="CASCADE"), nullable=False
    )
    trigger_id = Column(
        String(36), ForeignKey("triggers.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("dish_event_id", "trigger_id", name="dish_triggers_unique"),
        Index("idx_dish_triggers_dish_event_id", "dish_event_id"),
    )
