"""Investigation model."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from patchgate.database import Base


class Investigation(Base):
    """Investigations filed by the gate (auto_detect, patch_failure)."""

    __tablename__ = "investigations"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    trigger: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    run_meta: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
