from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.schoolpanel.models import Base

if TYPE_CHECKING:
    from app.schoolpanel.models import User
    from app.schoolpanel.modules.subjects.models import Subject


class GroupUser(Base):
    __tablename__ = "group_user"
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


class Group(Base):
    __tablename__ = "groups"
    __table_args__ = (Index("idx_groups_name", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    users: Mapped[list["User"]] = relationship(secondary="group_user", back_populates="groups", lazy="selectin")
    subjects: Mapped[list["Subject"]] = relationship(secondary="group_subject", back_populates="groups", lazy="selectin")
