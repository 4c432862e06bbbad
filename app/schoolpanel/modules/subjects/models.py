from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.schoolpanel.models import Base

if TYPE_CHECKING:
    from app.schoolpanel.models import User
    from app.schoolpanel.modules.groups.models import Group


class SubjectUser(Base):
    __tablename__ = "subject_user"
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


class GroupSubject(Base):
    __tablename__ = "group_subject"
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True)


class Subject(Base):
    __tablename__ = "subjects"
    __table_args__ = (Index("idx_subjects_name", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    users: Mapped[list["User"]] = relationship(secondary="subject_user", back_populates="subjects", lazy="selectin")
    groups: Mapped[list["Group"]] = relationship(secondary="group_subject", back_populates="subjects", lazy="selectin")
