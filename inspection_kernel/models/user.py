"""
Module: inspection_kernel.models.user
Responsibility: ORM persistence for users as seen by the workflow: identity,
    contact address for notifications, and role set.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Users are provisioned outside the workflow core; the workflow only reads
them (reviewer lookup for notifications, author/reviewer projections).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from inspection_kernel.db.base import TimestampedBase

if TYPE_CHECKING:
    from inspection_kernel.domain.inspection import UserRef


class UserModel(TimestampedBase):
    __tablename__ = "users"

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<User {self.email} roles={self.roles}>"

    @property
    def role_set(self) -> frozenset[str]:
        return frozenset(r.upper() for r in (self.roles or ()))

    def to_ref(self) -> UserRef:
        from inspection_kernel.domain.inspection import UserRef

        return UserRef(user_id=self.id, name=self.name, email=self.email)
