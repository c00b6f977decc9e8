from __future__ import annotations

import logging
import uuid
from typing import List, Tuple

from finance_assistant.core.exceptions import EmailAlreadyUsedError, UserNotFoundError
from finance_assistant.models import User
from finance_assistant.services.document_service import DEFAULT_PAGE_SIZE, normalize_page
from finance_assistant.storage.base import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, users: UserRepository) -> None:
        self.users = users

    async def create_user(self, name: str, email: str, phone: str = "") -> User:
        # Lookup failures propagate; only a genuine miss lets creation proceed.
        if await self.users.find_by_email(email) is not None:
            raise EmailAlreadyUsedError()

        user = User.new(name, email, phone)
        await self.users.create(user)
        logger.info("User %s created", user.external_id)
        return user

    async def get_user(self, external_id: uuid.UUID) -> User:
        user = await self.users.find_by_external_id(external_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def update_user(self, external_id: uuid.UUID, name: str = "", email: str = "", phone: str = "") -> User:
        user = await self.get_user(external_id)

        if email and email != user.email:
            existing = await self.users.find_by_email(email)
            if existing is not None and existing.id != user.id:
                raise EmailAlreadyUsedError()

        user.update(name, email, phone)
        await self.users.update(user)
        return user

    async def delete_user(self, external_id: uuid.UUID) -> None:
        user = await self.get_user(external_id)
        await self.users.delete(user.id)
        logger.info("User %s deleted", external_id)

    async def list_users(self, page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Tuple[List[User], int]:
        page, per_page, offset = normalize_page(page, per_page)
        users = await self.users.list(per_page, offset)
        total = await self.users.count()
        return users or [], total
