# coding: utf-8
"""
Service wiring for the HTTP layer

The app factory puts one AppServices on `app.state.services`; routes pull
their collaborators from it through these dependencies.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from src.services.liquidation import LiquidationScanner
from src.services.position_service import PositionLifecycle
from src.services.transfers import TransferSettlement
from src.tasks.liquidation_scheduler import LiquidationScheduler


@dataclass
class AppServices:
    lifecycle: PositionLifecycle
    transfers: TransferSettlement
    scanner: LiquidationScanner
    scheduler: Optional[LiquidationScheduler] = None


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_lifecycle(request: Request) -> PositionLifecycle:
    return get_services(request).lifecycle


def get_transfers(request: Request) -> TransferSettlement:
    return get_services(request).transfers


def get_scanner(request: Request) -> LiquidationScanner:
    return get_services(request).scanner
