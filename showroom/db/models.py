"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ThreadModel(Base):
    """A recommendation thread with its conversation serialized as JSON."""

    __tablename__ = "recommendation_threads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="interior_design", index=True)
    project_name: Mapped[str] = mapped_column(String(255), default="")
    image_url: Mapped[str] = mapped_column(Text, default="")
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")

    # Conversation (list of {role, content, timestamp})
    conversation_json: Mapped[str] = mapped_column(Text, default="[]")
    # Message contents only, one per line (keyword search target)
    conversation_text: Mapped[str] = mapped_column(Text, default="")
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_response: Mapped[str] = mapped_column(Text, default="")

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ThreadModel(id={self.id}, user_id={self.user_id}, active={self.is_active})>"


class ProductModel(Base):
    """Catalog product (read-only for the recommendation pipeline)."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    selling_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    category: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    series_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Stored as JSON text
    images_json: Mapped[str] = mapped_column(Text, default="[]")
    variations_json: Mapped[str] = mapped_column(Text, default="[]")

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<ProductModel(id={self.id}, name={self.name})>"
