"""Process-wide service wiring."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from lumo.config import Settings
from lumo.core.jwt import TokenSigner
from lumo.core.mailer import MailSender, build_mail_sender
from lumo.core.passwords import PasswordHasher
from lumo.db.base import Base
from lumo.db.record_store import RecordStore
from lumo.models.task import Task
from lumo.models.task_list import TaskList
from lumo.models.user import User
from lumo.schemas.task import TaskCreate, TaskUpdate
from lumo.schemas.task_list import TaskListCreate
from lumo.schemas.user import UserUpdate
from lumo.services.list_service import DUPLICATE_LIST_DETAIL, ListService
from lumo.services.password_reset_service import PasswordResetService
from lumo.services.resource_service import ResourceService
from lumo.services.task_service import TaskService
from lumo.services.token_service import TokenService
from lumo.services.user_service import UserService


@dataclass(frozen=True)
class ServiceRegistry:
    """Services shared by every request, built once at start-up."""

    users: UserService
    password_resets: PasswordResetService
    tokens: TokenService
    lists: ListService
    tasks: TaskService


def build_service_registry(
    settings: Settings,
    mail_sender: MailSender | None = None,
    hasher: PasswordHasher | None = None,
    store_factory: Callable[[type[Base]], RecordStore[Any]] = RecordStore,
) -> ServiceRegistry:
    """Create one record store per entity type and inject it into the services."""
    signer = TokenSigner(
        private_key_pem=settings.jwt.private_key_pem.get_secret_value(),
        public_key_pem=settings.jwt.public_key_pem.get_secret_value(),
    )
    hasher = hasher or PasswordHasher(rounds=settings.accounts.bcrypt_rounds)
    mail_sender = mail_sender or build_mail_sender(settings.email)

    accounts = ResourceService(
        store_factory(User),
        label="User",
        update_schema=UserUpdate,
        owner_field=None,
        conflict_detail="Email already registered.",
    )
    lists = ResourceService(
        store_factory(TaskList),
        label="List",
        create_schema=TaskListCreate,
        conflict_detail=DUPLICATE_LIST_DETAIL,
    )
    tasks = ResourceService(
        store_factory(Task),
        label="Task",
        create_schema=TaskCreate,
        update_schema=TaskUpdate,
    )

    tokens = TokenService(signer, access_token_ttl_seconds=settings.jwt.access_token_ttl_seconds)
    return ServiceRegistry(
        users=UserService(
            accounts,
            lists,
            hasher,
            tokens,
            enforce_password_policy=settings.accounts.enforce_password_policy,
            default_list_title=settings.accounts.default_list_title,
        ),
        password_resets=PasswordResetService(
            accounts,
            hasher,
            signer,
            mail_sender,
            frontend_base_url=settings.password_reset.link_base(),
            token_ttl_seconds=settings.password_reset.token_ttl_seconds,
            send_confirmation_email=settings.password_reset.send_confirmation_email,
            enforce_password_policy=settings.accounts.enforce_password_policy,
        ),
        tokens=tokens,
        lists=ListService(lists),
        tasks=TaskService(tasks, lists),
    )
