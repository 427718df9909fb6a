"""HTTP controller layer for room reservations and waiting-list management."""

from __future__ import annotations

import datetime as dt
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from roombook.controllers.dependencies import get_booking_service, get_sweeper
from roombook.domain.constraints import AgingConfig, InvalidInputError
from roombook.domain.models import Booking, RoomSnapshot, WaitingEntry, format_clock
from roombook.repository.room_registry import RoomNotFoundError
from roombook.services.booking_service import RoomBookingService
from roombook.services.sweeper_service import LifecycleSweeper
from roombook.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["rooms"])
health_router = APIRouter(tags=["health"])


# --- Input DTOs: every accepted wire spelling collapses into one field here ---

ROOM_ID_ALIASES = AliasChoices("roomId", "room_id")
REQUESTER_ALIASES = AliasChoices("user", "requester")
DATE_ALIASES = AliasChoices("date", "requestedDate", "bookingDate")
START_ALIASES = AliasChoices("start", "start_time", "startTime", "time", "from")
END_ALIASES = AliasChoices("end", "end_time", "endTime", "timeEnd", "to", "time")


class SlotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    requester: Optional[str] = Field(default=None, validation_alias=REQUESTER_ALIASES)
    date: Optional[str] = Field(default=None, validation_alias=DATE_ALIASES)
    start: Optional[str] = Field(default=None, validation_alias=START_ALIASES)
    end: Optional[str] = Field(default=None, validation_alias=END_ALIASES)


class ReserveRequest(SlotRequest):
    room_id: Optional[int] = Field(default=None, gt=0, validation_alias=ROOM_ID_ALIASES)
    base_priority: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("base_priority", "basePriority"),
    )


class CancelRequest(SlotRequest):
    room_id: int = Field(gt=0, validation_alias=ROOM_ID_ALIASES)


class PromoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_wait_hours: Optional[float] = Field(
        default=None,
        gt=0.0,
        validation_alias=AliasChoices("maxWaitHours", "max_wait_hours"),
    )
    priority_high: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("priorityHigh", "priority_high"),
    )
    priority_low: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("priorityLow", "priority_low"),
    )


# --- Output DTOs ---

class BookingResponse(BaseModel):
    id: str
    room_id: int
    user: str
    date: dt.date
    start: str
    end: str
    confirmed_at: dt.datetime
    base_priority: int = Field(ge=1)


class WaitingEntryResponse(BaseModel):
    id: Optional[str] = None
    room_id: int
    user: str
    date: Optional[dt.date] = None
    start: Optional[str] = None
    end: Optional[str] = None
    created_at: dt.datetime
    base_priority: int = Field(ge=1)


class RoomResponse(BaseModel):
    id: int
    name: str
    capacity: int = Field(ge=0)
    bookings: list[BookingResponse]
    waiting_list: list[WaitingEntryResponse]


class RoomsSummaryResponse(BaseModel):
    total: int = Field(ge=0)
    booked: int = Field(ge=0)
    available: int = Field(ge=0)


class ReserveResponse(BaseModel):
    accepted: bool
    message: str
    room: Optional[RoomResponse] = None
    booking: Optional[BookingResponse] = None
    waiting_entry: Optional[WaitingEntryResponse] = None
    current_meeting: Optional[BookingResponse] = None


class CancelResponse(BaseModel):
    found: bool
    message: str
    promoted: Optional[BookingResponse] = None


class PromoteResponse(BaseModel):
    promoted: bool
    message: str
    booking: Optional[BookingResponse] = None


class HealthResponse(BaseModel):
    status: str
    sweeper_running: bool


def _booking_response(booking: Optional[Booking]) -> Optional[BookingResponse]:
    if booking is None:
        return None
    return BookingResponse(
        id=booking.booking_id,
        room_id=booking.room_id,
        user=booking.requester,
        date=booking.interval.date,
        start=format_clock(booking.interval.start),
        end=format_clock(booking.interval.end),
        confirmed_at=booking.confirmed_at,
        base_priority=booking.base_priority,
    )


def _waiting_response(entry: Optional[WaitingEntry]) -> Optional[WaitingEntryResponse]:
    if entry is None:
        return None
    interval = entry.interval
    return WaitingEntryResponse(
        id=entry.entry_id,
        room_id=entry.room_id,
        user=entry.requester,
        date=interval.date if interval else None,
        start=format_clock(interval.start) if interval else None,
        end=format_clock(interval.end) if interval else None,
        created_at=entry.created_at,
        base_priority=entry.base_priority,
    )


def _room_response(snapshot: Optional[RoomSnapshot]) -> Optional[RoomResponse]:
    if snapshot is None:
        return None
    return RoomResponse(
        id=snapshot.room_id,
        name=snapshot.name,
        capacity=snapshot.capacity,
        bookings=[_booking_response(item) for item in snapshot.bookings],
        waiting_list=[_waiting_response(item) for item in snapshot.waiting_list],
    )


def _not_found(exc: RoomNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _bad_request(exc: InvalidInputError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/rooms", response_model=list[RoomResponse], status_code=status.HTTP_200_OK)
async def list_rooms(
    service: RoomBookingService = Depends(get_booking_service),
) -> list[RoomResponse]:
    return [_room_response(snapshot) for snapshot in service.list_rooms()]


@router.get(
    "/rooms/summary",
    response_model=RoomsSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def rooms_summary(
    service: RoomBookingService = Depends(get_booking_service),
) -> RoomsSummaryResponse:
    summary = service.rooms_summary()
    return RoomsSummaryResponse(
        total=summary.total,
        booked=summary.booked,
        available=summary.available,
    )


@router.post("/book", response_model=ReserveResponse, status_code=status.HTTP_200_OK)
async def book(
    payload: ReserveRequest,
    service: RoomBookingService = Depends(get_booking_service),
) -> ReserveResponse:
    """Book a slot, or join the waiting list when it is taken."""
    try:
        result = service.reserve(
            room_id=payload.room_id,
            requester=payload.requester,
            date=payload.date,
            start=payload.start,
            end=payload.end,
            base_priority=payload.base_priority,
        )
        return ReserveResponse(
            accepted=result.accepted,
            message=result.message,
            room=_room_response(result.room),
            booking=_booking_response(result.booking),
            waiting_entry=_waiting_response(result.waiting_entry),
            current_meeting=_booking_response(result.conflict),
        )
    except InvalidInputError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error",
        ) from exc


@router.post("/cancel", response_model=CancelResponse, status_code=status.HTTP_200_OK)
async def cancel(
    payload: CancelRequest,
    service: RoomBookingService = Depends(get_booking_service),
) -> CancelResponse:
    """Cancel a confirmed booking and promote the best waiting entry."""
    try:
        result = service.cancel_booking(
            room_id=payload.room_id,
            requester=payload.requester,
            date=payload.date,
            start=payload.start,
            end=payload.end,
        )
        return CancelResponse(
            found=result.found,
            message=result.message,
            promoted=_booking_response(result.promoted),
        )
    except InvalidInputError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error",
        ) from exc


@router.post("/cancel-waiting", response_model=CancelResponse, status_code=status.HTTP_200_OK)
async def cancel_waiting(
    payload: CancelRequest,
    service: RoomBookingService = Depends(get_booking_service),
) -> CancelResponse:
    try:
        result = service.cancel_waiting(
            room_id=payload.room_id,
            requester=payload.requester,
            date=payload.date,
            start=payload.start,
            end=payload.end,
        )
        return CancelResponse(found=result.found, message=result.message)
    except InvalidInputError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected waiting-list cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error",
        ) from exc


@router.post(
    "/promote/{room_id}",
    response_model=PromoteResponse,
    status_code=status.HTTP_200_OK,
)
async def promote(
    room_id: int,
    payload: Optional[PromoteRequest] = None,
    service: RoomBookingService = Depends(get_booking_service),
) -> PromoteResponse:
    """Manually promote the best-ranked waiting entry of a room."""
    try:
        aging_config: Optional[AgingConfig] = None
        if payload is not None:
            overrides = payload.model_dump(exclude_none=True)
            if overrides:
                aging_config = replace(service.default_aging_config, **overrides)
        result = service.promote_manually(room_id=room_id, aging_config=aging_config)
        return PromoteResponse(
            promoted=result.promoted,
            message=result.message,
            booking=_booking_response(result.booking),
        )
    except InvalidInputError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected promotion failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error",
        ) from exc


@health_router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health(
    sweeper: Optional[LifecycleSweeper] = Depends(get_sweeper),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        sweeper_running=bool(sweeper is not None and sweeper.is_running),
    )
