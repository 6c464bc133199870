# coding: utf-8
"""
Bot Header Authentication

Trading and user endpoints are called only by the chat bot, which sends a
shared secret in a configurable header (BOT_HEADER, default `x-trading`).

Usage:
    router = APIRouter(dependencies=[Depends(verify_bot_header)])
"""
import hmac

from fastapi import HTTPException, Request
from loguru import logger

from config.config import BOT_HEADER, BOT_HEADER_KEY


async def verify_bot_header(request: Request) -> str:
    """
    Verify the bot secret header

    Raises:
        HTTPException 401: If the header is missing or wrong
        HTTPException 500: If no key is configured

    Returns:
        Header value if valid
    """
    value = request.headers.get(BOT_HEADER)

    if not value:
        logger.warning(f"Bot header '{BOT_HEADER}' missing in request to {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not BOT_HEADER_KEY:
        logger.error("BOT_HEADER_KEY not configured in .env")
        raise HTTPException(status_code=500, detail="Bot authentication not configured")

    if not hmac.compare_digest(value.encode(), BOT_HEADER_KEY.encode()):
        logger.warning(f"Invalid bot header attempt on {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    return value
