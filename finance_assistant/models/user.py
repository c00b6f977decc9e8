from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from finance_assistant.core.exceptions import InvalidUserEmailError, InvalidUserNameError
from finance_assistant.models.document import utcnow


class User(BaseModel):
    id: Optional[int] = None
    external_id: uuid.UUID = Field(default_factory=uuid.uuid4, frozen=True)
    name: str
    email: str
    phone: str = ""
    created_at: datetime = Field(default_factory=utcnow, frozen=True)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def new(cls, name: str, email: str, phone: str = "") -> "User":
        now = utcnow()
        user = cls(name=name, email=email, phone=phone or "", created_at=now, updated_at=now)
        user.validate_fields()
        return user

    def validate_fields(self) -> None:
        if not self.name:
            raise InvalidUserNameError()
        if not self.email:
            raise InvalidUserEmailError()

    def update(self, name: str = "", email: str = "", phone: str = "") -> None:
        """Apply a partial update; blank name/email keep the current value."""
        if name:
            self.name = name
        if email:
            self.email = email
        self.phone = phone or ""
        self.updated_at = utcnow()
        self.validate_fields()
