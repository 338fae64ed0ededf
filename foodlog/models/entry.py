"""RawEntry and PredictedDish ORM models — write-once audit of what was typed and extracted."""

from sqlalchemy import Column, BigInteger, String, Text, ForeignKey, Index

from foodlog.database import Base


class RawEntry(Base):
    """The unstructured text a user submitted describing a meal. One per submission."""

    __tablename__ = "raw_entry"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False)
    raw_entry_text = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False)   # ms since epoch

    __table_args__ = (
        Index("idx_raw_entry_user_id", "user_id"),
        Index("idx_raw_entry_created_at", "created_at"),
    )


class PredictedDish(Base):
    """
    One dish the extraction oracle identified in a RawEntry.
    model_version / prompt_version record which oracle produced it.
    """

    __tablename__ = "predicted_dish"

    id = Column(String(36), primary_key=True)
    raw_entry_id = Column(
        String(36),
        ForeignKey("raw_entry.id", ondelete="CASCADE"),
        nullable=False,
    )
    dish_fragment_text = Column(Text, nullable=False)
    dish_name_suggestion = Column(Text, nullable=False)
    model_version = Column(Text, nullable=False)
    prompt_version = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_predicted_dish_raw_entry_id", "raw_entry_id"),
    )
