# coding: utf-8
"""
Trading API

Thin HTTP surface over the position lifecycle. Every endpoint is called by
the chat bot and keyed by the user's chat identity.

Endpoints:
    POST /trading/create-trade
    POST /trading/close-trade
    POST /trading/open-positions
    POST /trading/closed-positions
    POST /trading/check-bust
    GET  /trading/trading-assets

Response envelope:
    {"status": "success" | "fail", "error": "...", "code": "...", "body": ...}

Failures (TradingError) are returned with HTTP 200 and status "fail" by the
app-level handler.
"""
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field

from src.api.bot_auth import verify_bot_header
from src.api.dependencies import get_lifecycle, get_scanner
from src.core.exceptions import ValidationError
from src.services.liquidation import LiquidationScanner
from src.services.position_service import PositionLifecycle, position_to_dict


router = APIRouter(
    prefix="/trading",
    tags=["trading"],
    dependencies=[Depends(verify_bot_header)],
)


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================


class TradingResponse(BaseModel):
    """Envelope shared by all bot endpoints"""

    status: str = Field(..., description="success | fail")
    error: Optional[str] = None
    code: Optional[str] = None
    body: Optional[Any] = None


class ChatRequest(BaseModel):
    chatId: Union[int, str] = Field(..., description="Chat identity of the user")


class CreateTradeRequest(ChatRequest):
    """Open a leveraged position"""

    asset: Optional[str] = Field(None, examples=["BTC/USD"])
    side: Optional[str] = Field(None, description="up | down")
    amount: Optional[Union[int, float, str]] = Field(
        None, description="Stake in stable units, before the upfront fee"
    )
    leverage: Optional[int] = Field(None, description="1..1000")
    assetType: Optional[str] = Field(None, description="crypto | stock")
    userStopLossPrice: Optional[Union[int, float, str]] = Field(
        None, description="Advisory stop-loss hint"
    )
    userTakeProfitPrice: Optional[Union[int, float, str]] = Field(
        None, description="Advisory take-profit hint"
    )


class CloseTradeRequest(ChatRequest):
    id: int = Field(..., description="Position id")


def _require(value, name: str):
    if value is None or value == "":
        raise ValidationError(f"no {name} was found")
    return value


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.post(
    "/create-trade",
    response_model=TradingResponse,
    response_model_exclude_none=True,
    status_code=201,
)
async def create_trade(
    request: CreateTradeRequest,
    lifecycle: PositionLifecycle = Depends(get_lifecycle),
) -> TradingResponse:
    asset = _require(request.asset, "asset")
    side = _require(request.side, "side")
    amount = _require(request.amount, "amount")
    leverage = _require(request.leverage, "leverage")
    asset_type = _require(request.assetType, "assetType")

    address = await lifecycle.resolve_address(str(request.chatId))
    position = await lifecycle.open_position(
        address,
        asset,
        side,
        amount,
        leverage,
        asset_type,
        stop_loss_price=request.userStopLossPrice,
        take_profit_price=request.userTakeProfitPrice,
    )
    return TradingResponse(status="success", body={"position": position_to_dict(position)})


@router.post("/close-trade", response_model=TradingResponse, response_model_exclude_none=True)
async def close_trade(
    request: CloseTradeRequest,
    lifecycle: PositionLifecycle = Depends(get_lifecycle),
) -> TradingResponse:
    address = await lifecycle.resolve_address(str(request.chatId))
    settlement = await lifecycle.close_position(address, request.id)
    return TradingResponse(status="success", body=settlement.to_dict())


@router.post("/open-positions", response_model=TradingResponse, response_model_exclude_none=True)
async def open_positions(
    request: ChatRequest,
    lifecycle: PositionLifecycle = Depends(get_lifecycle),
) -> TradingResponse:
    address = await lifecycle.resolve_address(str(request.chatId))
    positions = await lifecycle.list_open_positions(address)
    return TradingResponse(status="success", body=positions)


@router.post("/closed-positions", response_model=TradingResponse, response_model_exclude_none=True)
async def closed_positions(
    request: ChatRequest,
    lifecycle: PositionLifecycle = Depends(get_lifecycle),
) -> TradingResponse:
    address = await lifecycle.resolve_address(str(request.chatId))
    positions = await lifecycle.list_closed_positions(address)
    return TradingResponse(status="success", body=positions)


@router.post("/check-bust", response_model=TradingResponse, response_model_exclude_none=True)
async def check_bust(
    scanner: LiquidationScanner = Depends(get_scanner),
) -> TradingResponse:
    """Run one liquidation sweep on demand"""
    summary = await scanner.scan()
    if summary.busted:
        logger.info(f"On-demand sweep busted {len(summary.busted)} positions")
    return TradingResponse(status="success", body=summary.to_dict())


@router.get("/trading-assets", response_model=TradingResponse, response_model_exclude_none=True)
async def trading_assets(
    lifecycle: PositionLifecycle = Depends(get_lifecycle),
) -> TradingResponse:
    assets = await lifecycle.list_assets()
    return TradingResponse(status="success", body=assets)
