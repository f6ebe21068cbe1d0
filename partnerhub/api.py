"""FastAPI application exposing remote users to partner Apps."""
from __future__ import annotations

import os
from datetime import datetime
from typing import Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .database import Database, resolve_database_path
from .errors import PartnerHubError, ValidationError, Violation
from .models import App, UserRecord
from .permissions import Permission, require_permission
from .security import AppKeyAuth
from .users import DEFAULT_ITEMS_PER_PAGE, MAX_ITEMS_PER_PAGE, UserService


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserResponse(_CamelModel):
    """Fields readable through ``get_users`` and ``list_users``."""

    id: str
    username: str
    email_address: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        return cls(
            id=record.id,
            username=record.username,
            email_address=record.email_address,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class UserCreateRequest(_CamelModel):
    """Writable fields for ``post_users``.

    Everything is optional here so that missing values are reported by the
    lifecycle validation with the same error shape as other violations.
    """

    username: Optional[str] = None
    email_address: Optional[str] = None
    plain_password: Optional[str] = None
    plain_password_confirm: Optional[str] = None


class UserUpdateRequest(_CamelModel):
    """Writable fields for ``put_users``."""

    username: Optional[str] = None
    email_address: Optional[str] = None
    plain_password: Optional[str] = None
    plain_password_confirm: Optional[str] = None


def _request_violations(exc: RequestValidationError) -> List[Violation]:
    """Map FastAPI's request errors onto the same shape as lifecycle violations."""

    violations: List[Violation] = []
    for error in exc.errors():
        loc = tuple(error.get("loc") or ())
        last = loc[-1] if len(loc) > 1 else None
        field = (to_camel(last) if "_" in last else last) if isinstance(last, str) else None
        violations.append(Violation(field, str(error.get("msg", "Invalid value."))))
    if not violations:
        violations.append(Violation(None, "Invalid request."))
    return violations


def create_app(
    *,
    database: Database | None = None,
    auth: AppKeyAuth | None = None,
    initialize_database: bool = False,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    if database is None:
        db_path = resolve_database_path(os.getenv("PARTNERHUB_DB_PATH"))
        database = Database(db_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if auth is None:
        auth = AppKeyAuth(database)

    service = UserService(database, clock=clock)

    app = FastAPI(
        title="PartnerHub Users",
        description="Remote users of partner applications",
        version="1.0.0",
    )
    app.state.database = database
    app.state.users = service

    async def get_current_app(request: Request) -> App:
        return await auth(request)

    @app.exception_handler(PartnerHubError)
    async def handle_partnerhub_error(request: Request, exc: PartnerHubError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError.from_violations(_request_violations(exc))
        return JSONResponse(status_code=error.status_code, content=error.as_dict())

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/users", response_model=List[UserResponse])
    def list_users(
        page: int = Query(1, ge=1),
        items_per_page: int = Query(
            DEFAULT_ITEMS_PER_PAGE, ge=1, le=MAX_ITEMS_PER_PAGE, alias="itemsPerPage"
        ),
        caller: App = Depends(get_current_app),
    ) -> List[UserResponse]:
        require_permission(caller, Permission.LIST_USERS)
        records = service.list(caller, page=page, items_per_page=items_per_page)
        return [UserResponse.from_record(record) for record in records]

    @app.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    def create_user(
        payload: UserCreateRequest,
        caller: App = Depends(get_current_app),
    ) -> UserResponse:
        require_permission(caller, Permission.POST_USERS)
        record = service.create(
            payload.username,
            payload.email_address,
            payload.plain_password,
            payload.plain_password_confirm,
            caller,
        )
        return UserResponse.from_record(record)

    @app.get("/users/{user_id}", response_model=UserResponse)
    def get_user(user_id: str, caller: App = Depends(get_current_app)) -> UserResponse:
        record = service.get(caller, user_id)
        require_permission(caller, Permission.GET_USERS, record)
        return UserResponse.from_record(record)

    @app.put("/users/{user_id}", response_model=UserResponse)
    def update_user(
        user_id: str,
        payload: UserUpdateRequest,
        caller: App = Depends(get_current_app),
    ) -> UserResponse:
        record = service.get(caller, user_id)
        require_permission(caller, Permission.PUT_USERS, record)
        updated = service.update(
            record,
            username=payload.username,
            email_address=payload.email_address,
            plain_password=payload.plain_password,
            plain_password_confirm=payload.plain_password_confirm,
        )
        return UserResponse.from_record(updated)

    @app.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_user(user_id: str, caller: App = Depends(get_current_app)) -> Response:
        record = service.get(caller, user_id)
        require_permission(caller, Permission.DELETE_USERS, record)
        service.soft_delete(record)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["UserCreateRequest", "UserResponse", "UserUpdateRequest", "create_app"]
