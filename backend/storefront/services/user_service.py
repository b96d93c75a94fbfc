"""
User Service

Creates, updates and looks up user accounts.
"""
from typing import List, Optional

from ..db.client import DatabaseClient, RecordNotFoundError
from ..db.models import UserModel, utcnow
from ..exceptions import UserAlreadyExistsError, UserNotFoundError
from ..models.orders import CreateUserInput, UpdateUserInput, User
from ..utils.logger import AuditLogger

USERS_TABLE = UserModel.__tablename__


class UserService:

    def __init__(self, db: DatabaseClient, logger: AuditLogger):
        self.db = db
        self.logger = logger

    async def create_user(self, data: CreateUserInput) -> User:
        """Create a user. Emails are unique."""
        self.logger.info("Creating user", email=data.email)

        if await self.find_by_email(data.email):
            raise UserAlreadyExistsError(data.email)

        record = await self.db.insert(USERS_TABLE, {
            "email": data.email,
            "name": data.name,
            "created_at": utcnow(),
        })

        self.logger.info("User created", user_id=record["id"])
        return User.model_validate(record)

    async def find_by_email(self, email: str) -> Optional[User]:
        record = await self.db.find_one(USERS_TABLE, {"email": email})
        return User.model_validate(record) if record else None

    async def get_user(self, user_id: str) -> Optional[User]:
        record = await self.db.find_by_id(USERS_TABLE, user_id)
        return User.model_validate(record) if record else None

    async def require_user(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def update_user(self, user_id: str, data: UpdateUserInput) -> User:
        self.logger.info("Updating user", user_id=user_id)

        changes = data.model_dump(exclude_none=True)
        if "email" in changes:
            existing = await self.find_by_email(changes["email"])
            if existing and existing.id != user_id:
                raise UserAlreadyExistsError(changes["email"])

        try:
            record = await self.db.update(USERS_TABLE, user_id, {**changes, "updated_at": utcnow()})
        except RecordNotFoundError:
            raise UserNotFoundError(user_id) from None
        return User.model_validate(record)

    async def delete_user(self, user_id: str) -> None:
        self.logger.warning("Deleting user", user_id=user_id)
        try:
            await self.db.delete(USERS_TABLE, user_id)
        except RecordNotFoundError:
            raise UserNotFoundError(user_id) from None

    async def list_users(self, limit: int = 10, offset: int = 0) -> List[User]:
        records = await self.db.find_many(
            USERS_TABLE,
            order_by=["created_at"],
            limit=limit,
            offset=offset
        )
        return [User.model_validate(r) for r in records]
