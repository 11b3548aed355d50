"""
Client router.

Staff management of client profiles and the client's own dashboard.
All endpoints are prefixed with /clients when mounted in the main app.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import request_logger
from app.core.db.crud import client_db
from app.core.db.models import Client
from app.core.dependencies import (
    AdminUser,
    ClientUser,
    CurrentUser,
    ReviewerUser,
    get_async_session,
)
from app.core.enums import ClientStatus
from app.core.exceptions.handlers import exception_schema
from app.core.exceptions.types import ForbiddenException, NotFoundException
from app.core.schemas.auth import MessageResponse
from app.core.schemas.client import (
    AccountSummary,
    ClientCreateRequest,
    ClientDashboardResponse,
    ClientListResponse,
    ClientResponse,
    ClientUpdateRequest,
)
from app.core.schemas.transaction import TransactionResponse
from app.core.schemas.withdrawal import WithdrawalResponse
from app.core.services.client import ClientService
from app.core.services.withdrawal import STAFF_ROLES


router = APIRouter(responses=exception_schema)


@router.get(
    "",
    response_model=ClientListResponse,
    summary="List clients",
    description="""
## List Clients

Admin and manager only. Newest first.

### Query Parameters

| Parameter | Type | Description |
|-----------|------|-------------|
| `status` | string | `active`, `pending` or `inactive` |
| `search` | string | Matches name, email or client id |
| `page` | int | Page number, from 1 |
| `limit` | int | Page size, 1-100 |
""",
)
async def list_clients(
    user: ReviewerUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    status_filter: Annotated[ClientStatus | None, Query(alias="status")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> ClientListResponse:
    filters = []
    if status_filter is not None:
        filters.append(Client.status == status_filter)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Client.first_name.ilike(pattern),
                Client.last_name.ilike(pattern),
                Client.email.ilike(pattern),
                Client.client_id.ilike(pattern),
            )
        )

    async with session.begin():
        total = await client_db.count(session, filters)
        clients = await client_db.get_all(
            session,
            filters=filters,
            order_by=[Client.created_at.desc()],
            limit=limit,
            offset=(page - 1) * limit,
        )

    return ClientListResponse(
        items=[ClientResponse.model_validate(c) for c in clients],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a client",
    description="""
## Create a Client

Create a client profile with its login account. Admin and manager only.
The account gets a random password; the client sets their own through
`POST /auth/forgot-password`. A welcome email is sent (best effort).

### Error Responses

| Status | Reason |
|--------|--------|
| `409 Conflict` | Email already registered |
""",
)
async def create_client(
    request_data: ClientCreateRequest,
    user: ReviewerUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ClientResponse:
    request_logger.info(f"POST /clients - user={user.id} email={request_data.email}")
    client = await ClientService.create(
        session,
        first_name=request_data.first_name,
        last_name=request_data.last_name,
        email=request_data.email,
        phone=request_data.phone,
        address=(
            request_data.address.model_dump(exclude_none=True)
            if request_data.address
            else None
        ),
        notes=request_data.notes,
    )
    return ClientResponse.model_validate(client)


@router.get(
    "/dashboard",
    response_model=ClientDashboardResponse,
    summary="Client dashboard",
)
async def client_dashboard(
    user: ClientUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ClientDashboardResponse:
    """Balance figures plus the latest transactions and withdrawals."""
    dashboard = await ClientService.get_dashboard(session, user)
    client = dashboard.client

    return ClientDashboardResponse(
        client=ClientResponse.model_validate(client),
        account_summary=AccountSummary(
            account_balance=client.account_balance,
            available_balance=client.available_balance,
            pending_withdrawals=client.pending_withdrawals,
            total_investments=client.total_investments,
        ),
        recent_transactions=[
            TransactionResponse.model_validate(t)
            for t in dashboard.recent_transactions
        ],
        recent_withdrawals=[
            WithdrawalResponse.model_validate(w)
            for w in dashboard.recent_withdrawals
        ],
    )


@router.get(
    "/{client_id}",
    response_model=ClientResponse,
    summary="Get a client",
)
async def get_client(
    client_id: UUID,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ClientResponse:
    """Staff can read any client, a client only their own profile."""
    async with session.begin():
        client = await client_db.get_by_id(session, client_id)

    if client is None:
        raise NotFoundException("Client not found.")
    if user.role not in STAFF_ROLES and client.user_id != user.id:
        raise ForbiddenException("Not authorized to access this client.")

    return ClientResponse.model_validate(client)


@router.put(
    "/{client_id}",
    response_model=ClientResponse,
    summary="Update a client",
)
async def update_client(
    client_id: UUID,
    request_data: ClientUpdateRequest,
    user: ReviewerUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ClientResponse:
    """Partial update. Name and email changes are mirrored to the login."""
    updates = request_data.model_dump(exclude_unset=True)
    if request_data.address is not None:
        updates["address"] = request_data.address.model_dump(exclude_none=True)

    client = await ClientService.update(session, client_id, updates)
    return ClientResponse.model_validate(client)


@router.delete(
    "/{client_id}",
    response_model=MessageResponse,
    summary="Delete a client",
)
async def delete_client(
    client_id: UUID,
    user: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Delete a client with its ledger, withdrawals and login. Admin only."""
    request_logger.info(f"DELETE /clients/{client_id} - user={user.id}")
    await ClientService.delete(session, client_id)
    return MessageResponse(message="Client deleted successfully")
