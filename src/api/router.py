"""
FastAPI Router for the bot-facing settlement API
"""

from fastapi import APIRouter

from src.api.trading import router as trading_router
from src.api.user import router as user_router


router = APIRouter()

# Sub-routers carry their own prefixes and bot-header auth
router.include_router(trading_router)
router.include_router(user_router)
