"""
Booking endpoints
"""

from typing import Any, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from gymbook.api.deps import get_current_actor, get_booking_service
from gymbook.models.booking import BookingStatus
from gymbook.schemas.booking import (
    BookingCreate,
    BookingCancel,
    BookingRate,
    AttendanceUpdate,
    BookingResponse,
    CancellationResponse,
    MyBookingItem,
)
from gymbook.schemas.response import SuccessResponse
from gymbook.services.actor import Actor
from gymbook.services.booking_service import BookingService

router = APIRouter()


@router.post("/", response_model=SuccessResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
) -> Any:
    """
    Book a seat in a schedule
    """
    booking = await service.create_booking(actor, booking_data.schedule_id)
    return SuccessResponse(
        data=BookingResponse.model_validate(booking),
        message="Booking confirmed"
    )


@router.get("/my-bookings", response_model=SuccessResponse[List[MyBookingItem]])
async def get_my_bookings(
    kind: Optional[str] = Query(None, alias="type"),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
) -> Any:
    """
    The caller's bookings; type is "upcoming" or "past"
    """
    views = await service.list_for_user(actor, kind, booking_status)
    items = [
        MyBookingItem(
            id=view.booking.id,
            schedule_id=view.booking.schedule_id,
            status=view.booking.status,
            booking_date=view.booking.booking_date,
            cancelled_at=view.booking.cancelled_at,
            cancellation_reason=view.booking.cancellation_reason,
            attended=view.booking.attended,
            rating=view.booking.rating,
            class_name=view.class_name,
            trainer_name=view.trainer_name,
            start_time=view.start_time,
            end_time=view.end_time,
            room=view.room,
            schedule_status=view.schedule_status,
            is_upcoming=view.is_upcoming,
            can_cancel=view.can_cancel,
        )
        for view in views
    ]
    return SuccessResponse(data=items)


@router.get("/{booking_id}", response_model=SuccessResponse[BookingResponse])
async def get_booking(
    booking_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
) -> Any:
    booking = await service.get_booking(actor, booking_id)
    return SuccessResponse(data=BookingResponse.model_validate(booking))


@router.post("/{booking_id}/cancel", response_model=SuccessResponse[CancellationResponse])
async def cancel_booking(
    booking_id: UUID,
    cancel_data: BookingCancel = None,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
) -> Any:
    """
    Cancel a booking; the freed seat is offered to the waiting list
    """
    reason = cancel_data.reason if cancel_data else None
    outcome = await service.cancel_booking(actor, booking_id, reason)
    message = "Booking cancelled"
    if outcome.is_late_cancellation:
        message = "Booking cancelled (late cancellation)"
    return SuccessResponse(
        data=CancellationResponse.model_validate(outcome),
        message=message
    )


@router.post("/{booking_id}/rate", response_model=SuccessResponse[BookingResponse])
async def rate_booking(
    booking_id: UUID,
    rate_data: BookingRate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
) -> Any:
    booking = await service.rate_booking(actor, booking_id, rate_data.rating, rate_data.feedback)
    return SuccessResponse(
        data=BookingResponse.model_validate(booking),
        message="Thank you for your feedback"
    )


@router.patch("/{booking_id}/attendance", response_model=SuccessResponse[BookingResponse])
async def mark_attendance(
    booking_id: UUID,
    attendance: AttendanceUpdate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
) -> Any:
    """
    Mark attendance (trainer of the class or admin)
    """
    booking = await service.mark_attendance(actor, booking_id, attendance.attended)
    return SuccessResponse(
        data=BookingResponse.model_validate(booking),
        message="Attendance recorded"
    )
