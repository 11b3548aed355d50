"""
Withdrawal router.

This module provides endpoints for:
- Requesting a withdrawal (client) and confirming it with the emailed PIN
- Re-issuing a PIN (admin)
- Listing, reviewing and cancelling withdrawals

All endpoints are prefixed with /withdrawals when mounted in the main app
and require a Bearer access token.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import request_logger
from app.core.db.crud import client_db, withdrawal_db
from app.core.db.models import Withdrawal
from app.core.dependencies import (
    AdminUser,
    ClientUser,
    CurrentUser,
    ReviewerUser,
    get_async_session,
)
from app.core.enums import WithdrawalStatus
from app.core.exceptions.handlers import exception_schema
from app.core.exceptions.types import NotFoundException
from app.core.schemas.withdrawal import (
    PinIssuedResponse,
    PinVerifyRequest,
    WithdrawalCreateRequest,
    WithdrawalCreatedResponse,
    WithdrawalListResponse,
    WithdrawalResponse,
    WithdrawalStatsResponse,
    WithdrawalStatusUpdateRequest,
)
from app.core.services.withdrawal import WithdrawalService


router = APIRouter(responses=exception_schema)


@router.post(
    "",
    response_model=WithdrawalCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a withdrawal",
    description="""
## Request a Withdrawal

Create a `pending` withdrawal with its pending ledger entry and email a
verification PIN to the client. The request only moves on to `processing`
once the PIN is confirmed with `POST /withdrawals/{id}/verify`.

### Rules

- `MIN_WITHDRAWAL_AMOUNT` <= amount <= `MAX_WITHDRAWAL_AMOUNT`
- Amount must not exceed the available balance (balance minus pending
  withdrawals)
- Fee is `amount * WITHDRAWAL_FEE_PERCENTAGE / 100`
- `bank_account` is required for `bankTransfer`, `crypto_wallet` for
  `cryptocurrency`

### Error Responses

| Status | Reason |
|--------|--------|
| `400 Bad Request` | Amount out of range or insufficient balance |
| `403 Forbidden` | Caller is not a client |
| `404 Not Found` | Caller has no client profile |
| `500 Internal Server Error` | The PIN email could not be sent (request is discarded) |
""",
)
async def create_withdrawal(
    request_data: WithdrawalCreateRequest,
    user: ClientUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> WithdrawalCreatedResponse:
    request_logger.info(
        f"POST /withdrawals - user={user.id} amount={request_data.amount} "
        f"method={request_data.method.value}"
    )
    withdrawal, issued = await WithdrawalService.create(
        session,
        user=user,
        amount=request_data.amount,
        method=request_data.method,
        destination=request_data.destination(),
        currency=request_data.currency,
        notes=request_data.notes,
    )
    return WithdrawalCreatedResponse(
        withdrawal=WithdrawalResponse.model_validate(withdrawal),
        pin_expires_at=issued.expires_at,
    )


@router.get(
    "/my",
    response_model=list[WithdrawalResponse],
    summary="My withdrawals",
)
async def list_my_withdrawals(
    user: ClientUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> list[WithdrawalResponse]:
    """Withdrawals of the authenticated client, newest first."""
    async with session.begin():
        client = await client_db.get_by_user_id(session, user.id)
        if client is None:
            raise NotFoundException("Client not found.")
        withdrawals = await withdrawal_db.get_for_client(session, client.id)

    return [WithdrawalResponse.model_validate(w) for w in withdrawals]


@router.get(
    "",
    response_model=WithdrawalListResponse,
    summary="List withdrawals",
    description="""
## List Withdrawals

All withdrawals, newest first. Admin and manager only.

### Query Parameters

| Parameter | Type | Description |
|-----------|------|-------------|
| `status` | string | Only withdrawals in this status |
| `client_id` | UUID | Only withdrawals of this client |
| `page` | int | Page number, from 1 |
| `limit` | int | Page size, 1-100 |
""",
)
async def list_withdrawals(
    user: ReviewerUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    status_filter: Annotated[
        WithdrawalStatus | None, Query(alias="status")
    ] = None,
    client_id: Annotated[UUID | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> WithdrawalListResponse:
    filters = []
    if status_filter is not None:
        filters.append(Withdrawal.status == status_filter)
    if client_id is not None:
        filters.append(Withdrawal.client_id == client_id)

    async with session.begin():
        total = await withdrawal_db.count(session, filters)
        withdrawals = await withdrawal_db.get_all(
            session,
            filters=filters,
            order_by=[Withdrawal.created_at.desc()],
            limit=limit,
            offset=(page - 1) * limit,
        )

    return WithdrawalListResponse(
        items=[WithdrawalResponse.model_validate(w) for w in withdrawals],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/stats",
    response_model=WithdrawalStatsResponse,
    summary="Withdrawal statistics",
)
async def withdrawal_stats(
    user: ReviewerUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> WithdrawalStatsResponse:
    """Counts per status, outstanding amount and processing times."""
    async with session.begin():
        stats = await withdrawal_db.get_stats(session)
    return WithdrawalStatsResponse(**stats)


@router.get(
    "/{withdrawal_id}",
    response_model=WithdrawalResponse,
    summary="Get a withdrawal",
)
async def get_withdrawal(
    withdrawal_id: UUID,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> WithdrawalResponse:
    """Staff can read any withdrawal, clients only their own."""
    async with session.begin():
        withdrawal = await WithdrawalService.get_accessible(
            session, user, withdrawal_id
        )
    return WithdrawalResponse.model_validate(withdrawal)


@router.post(
    "/{withdrawal_id}/verify",
    response_model=WithdrawalResponse,
    summary="Confirm a withdrawal with its PIN",
    description="""
## Confirm a Withdrawal

Check the PIN emailed for this withdrawal. A correct PIN moves the request
from `pending` to `processing`. Every attempt counts toward
`OTP_MAX_ATTEMPTS`.

### Error Responses

| Status | kind | Reason |
|--------|------|--------|
| `400` | `invalid_code` | Wrong PIN; body has `attempts_left` |
| `400` | `expired` | PIN expired; ask an admin for a new one |
| `400` | `attempts_exhausted` | No attempts left |
| `400` | `already_verified` | The PIN was already used |
| `400` | `invalid_transition` | Withdrawal already completed, rejected or cancelled |
| `403` | `forbidden` | Not the owner of the withdrawal |
| `404` | `not_found` | Unknown withdrawal or no PIN issued |
""",
)
async def verify_withdrawal_pin(
    withdrawal_id: UUID,
    request_data: PinVerifyRequest,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> WithdrawalResponse:
    withdrawal, _ = await WithdrawalService.verify_pin(
        session, user, withdrawal_id, request_data.pin
    )
    return WithdrawalResponse.model_validate(withdrawal)


@router.post(
    "/{withdrawal_id}/generate-pin",
    response_model=PinIssuedResponse,
    summary="Re-issue a withdrawal PIN",
)
async def regenerate_withdrawal_pin(
    withdrawal_id: UUID,
    user: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> PinIssuedResponse:
    """Email a new PIN for a pending withdrawal to its client. Admin only."""
    withdrawal, issued = await WithdrawalService.regenerate_pin(
        session, withdrawal_id
    )
    return PinIssuedResponse(
        withdrawal_id=withdrawal.withdrawal_id,
        pin_expires_at=issued.expires_at,
    )


@router.put(
    "/{withdrawal_id}",
    response_model=WithdrawalResponse,
    summary="Review a withdrawal",
    description="""
## Review a Withdrawal

Change the status of a withdrawal. Admin and manager only. The linked ledger
entry follows (`rejected` marks it `failed`), `completed` debits the
client's balance, and the client is emailed the new status.

### Allowed Transitions

| From | To |
|------|----|
| `pending` | `processing`, `rejected`, `cancelled` |
| `processing` | `completed`, `rejected`, `cancelled` |
""",
)
async def update_withdrawal_status(
    withdrawal_id: UUID,
    request_data: WithdrawalStatusUpdateRequest,
    user: ReviewerUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> WithdrawalResponse:
    request_logger.info(
        f"PUT /withdrawals/{withdrawal_id} - user={user.id} "
        f"status={request_data.status.value}"
    )
    withdrawal = await WithdrawalService.update_status(
        session,
        actor=user,
        withdrawal_id=withdrawal_id,
        status=request_data.status,
        notes=request_data.notes,
    )
    return WithdrawalResponse.model_validate(withdrawal)


@router.delete(
    "/{withdrawal_id}",
    response_model=WithdrawalResponse,
    summary="Cancel a withdrawal",
)
async def cancel_withdrawal(
    withdrawal_id: UUID,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> WithdrawalResponse:
    """Cancel a pending or processing withdrawal. Clients can cancel their own."""
    withdrawal = await WithdrawalService.cancel(session, user, withdrawal_id)
    return WithdrawalResponse.model_validate(withdrawal)
