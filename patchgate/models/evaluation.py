"""Patch evaluation model."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from patchgate.database import Base


class PatchEvaluation(Base):
    """Patch evaluation records - inserted pending, updated once to a terminal status."""

    __tablename__ = "patch_evaluations"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # pending|approved|rejected
    patch_text: Mapped[str] = mapped_column(Text, nullable=False)
    patch_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    diff: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reasons: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    probe_results_before: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    probe_results_after: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    investigation_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    evaluation_meta: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
