# coding: utf-8
"""
User API

Balance view and withdrawal requests for the chat bot.

Endpoints:
    POST /user/info
    POST /user/withdraw
"""
from typing import Optional, Union

from fastapi import APIRouter, Depends
from pydantic import Field

from src.api.bot_auth import verify_bot_header
from src.api.dependencies import get_lifecycle, get_transfers
from src.api.trading import ChatRequest, TradingResponse
from src.core.exceptions import ValidationError
from src.services.position_service import PositionLifecycle
from src.services.transfers import TransferSettlement, requires_approval


router = APIRouter(
    prefix="/user",
    tags=["user"],
    dependencies=[Depends(verify_bot_header)],
)


class WithdrawRequest(ChatRequest):
    destinationAddress: Optional[str] = Field(None, description="0x-prefixed EVM address")
    amount: Optional[Union[int, float, str]] = Field(None, description="Amount in stable units")


@router.post("/info", response_model=TradingResponse, response_model_exclude_none=True)
async def user_info(
    request: ChatRequest,
    lifecycle: PositionLifecycle = Depends(get_lifecycle),
) -> TradingResponse:
    """
    Returns:
        {"status": "success", "body": {"address": "0x...", "balance": "12.34"}}
    """
    info = await lifecycle.get_user_info(str(request.chatId))
    return TradingResponse(status="success", body=info)


@router.post("/withdraw", response_model=TradingResponse, response_model_exclude_none=True)
async def withdraw(
    request: WithdrawRequest,
    transfers: TransferSettlement = Depends(get_transfers),
) -> TradingResponse:
    if not request.destinationAddress:
        raise ValidationError("no destination address")
    if request.amount is None or request.amount == "":
        raise ValidationError("no withdraw amount")

    transfer = await transfers.request_withdrawal(
        str(request.chatId), request.amount, request.destinationAddress
    )
    return TradingResponse(
        status="success",
        body={
            "id": transfer.id,
            "requiresApproval": requires_approval(transfer),
        },
    )
