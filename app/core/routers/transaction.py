"""
Transaction (ledger) router.

All endpoints are prefixed with /transactions when mounted in the main app.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud import client_db, transaction_db
from app.core.db.models import Transaction
from app.core.dependencies import (
    ClientUser,
    ReviewerUser,
    StaffUser,
    get_async_session,
)
from app.core.enums import TransactionStatus, TransactionType
from app.core.exceptions.handlers import exception_schema
from app.core.exceptions.types import NotFoundException
from app.core.schemas.transaction import (
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
)
from app.core.services.transaction import TransactionService


router = APIRouter(responses=exception_schema)


@router.get(
    "/my",
    response_model=list[TransactionResponse],
    summary="My transactions",
)
async def list_my_transactions(
    user: ClientUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> list[TransactionResponse]:
    """Ledger entries of the authenticated client, newest first."""
    async with session.begin():
        client = await client_db.get_by_user_id(session, user.id)
        if client is None:
            raise NotFoundException("Client not found.")
        transactions = await transaction_db.get_all(
            session,
            filters=[Transaction.client_id == client.id],
            order_by=[Transaction.created_at.desc()],
            limit=limit,
        )

    return [TransactionResponse.model_validate(t) for t in transactions]


@router.get(
    "",
    response_model=TransactionListResponse,
    summary="List transactions",
    description="""
## List Transactions

All ledger entries, newest first. Staff only.

### Query Parameters

| Parameter | Type | Description |
|-----------|------|-------------|
| `client_id` | UUID | Only entries of this client |
| `type` | string | `deposit`, `withdrawal`, `investment`, `return`, `fee`, `transfer`, `other` |
| `status` | string | `pending`, `processing`, `completed`, `failed`, `cancelled` |
| `page` | int | Page number, from 1 |
| `limit` | int | Page size, 1-100 |
""",
)
async def list_transactions(
    user: StaffUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    client_id: Annotated[UUID | None, Query()] = None,
    type_filter: Annotated[TransactionType | None, Query(alias="type")] = None,
    status_filter: Annotated[
        TransactionStatus | None, Query(alias="status")
    ] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> TransactionListResponse:
    filters = []
    if client_id is not None:
        filters.append(Transaction.client_id == client_id)
    if type_filter is not None:
        filters.append(Transaction.type == type_filter)
    if status_filter is not None:
        filters.append(Transaction.status == status_filter)

    async with session.begin():
        total = await transaction_db.count(session, filters)
        transactions = await transaction_db.get_all(
            session,
            filters=filters,
            order_by=[Transaction.created_at.desc()],
            limit=limit,
            offset=(page - 1) * limit,
        )

    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
    description="""
## Record a Transaction

Add a ledger entry for a client. Admin and manager only.

An entry created as `completed` is applied to the client's balance right
away: deposits and returns credit it; withdrawals, investments and fees
debit it.

### Error Responses

| Status | Reason |
|--------|--------|
| `400 Bad Request` | Completed debit larger than the balance |
| `404 Not Found` | Unknown client |
""",
)
async def create_transaction(
    request_data: TransactionCreateRequest,
    user: ReviewerUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TransactionResponse:
    transaction = await TransactionService.create(
        session, user, request_data.model_dump()
    )
    return TransactionResponse.model_validate(transaction)
