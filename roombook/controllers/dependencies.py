"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request, status

from roombook.services.booking_service import RoomBookingService
from roombook.services.sweeper_service import LifecycleSweeper


def get_booking_service(request: Request) -> RoomBookingService:
    service = getattr(request.app.state, "booking_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking service is not initialized",
        )
    return service


def get_sweeper(request: Request) -> Optional[LifecycleSweeper]:
    return getattr(request.app.state, "sweeper", None)
