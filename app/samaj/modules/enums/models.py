from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.samaj.models import Base
from app.samaj.utils import iso


class EnumList(Base):
    __tablename__ = "enum_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    enum_type: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "SAMAJ_TYPES"
    values: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "enumType": self.enum_type,
            "values": list(self.values or []),
            "isActive": self.is_active,
            "description": self.description,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
