"""
Schedule administration endpoints
"""

from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query

from gymbook.api.deps import get_current_actor, get_schedule_service
from gymbook.models.booking import BookingStatus
from gymbook.schemas.response import SuccessResponse, MessageResponse
from gymbook.schemas.schedule import (
    ScheduleCancel,
    ScheduleCancellationResponse,
    AvailabilityResponse,
    RosterBookingItem,
    RosterWaitingItem,
    ScheduleRosterResponse,
)
from gymbook.services.actor import Actor
from gymbook.services.schedule_service import ScheduleService

router = APIRouter()


@router.post("/{schedule_id}/cancel", response_model=SuccessResponse[ScheduleCancellationResponse])
async def cancel_schedule(
    schedule_id: UUID,
    cancel_data: ScheduleCancel = None,
    actor: Actor = Depends(get_current_actor),
    service: ScheduleService = Depends(get_schedule_service)
) -> Any:
    """
    Cancel a schedule and every confirmed booking on it
    """
    reason = cancel_data.reason if cancel_data else None
    outcome = await service.cancel_schedule(actor, schedule_id, reason)
    return SuccessResponse(
        data=ScheduleCancellationResponse(
            schedule_id=outcome.schedule.id,
            status=outcome.schedule.status,
            affected_count=outcome.affected_count,
            removed_waiting=outcome.removed_waiting,
        ),
        message=f"Schedule cancelled. {outcome.affected_count} bookings were cancelled"
    )


@router.delete("/{schedule_id}", response_model=MessageResponse)
async def delete_schedule(
    schedule_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ScheduleService = Depends(get_schedule_service)
) -> Any:
    await service.delete_schedule(actor, schedule_id)
    return MessageResponse(message="Schedule deleted")


@router.get("/{schedule_id}/availability", response_model=SuccessResponse[AvailabilityResponse])
async def get_availability(
    schedule_id: UUID,
    service: ScheduleService = Depends(get_schedule_service)
) -> Any:
    availability = await service.get_availability(schedule_id)
    return SuccessResponse(data=AvailabilityResponse.model_validate(availability))


@router.get("/{schedule_id}/roster", response_model=SuccessResponse[ScheduleRosterResponse])
async def get_roster(
    schedule_id: UUID,
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    service: ScheduleService = Depends(get_schedule_service)
) -> Any:
    """
    Bookings and waiting list of a schedule (its trainer or an admin)
    """
    roster = await service.get_roster(actor, schedule_id, booking_status)
    return SuccessResponse(data=ScheduleRosterResponse(
        schedule_id=roster.schedule.id,
        class_name=roster.class_name,
        status=roster.schedule.status,
        capacity=roster.capacity,
        current_bookings=roster.schedule.current_bookings,
        bookings=[
            RosterBookingItem(
                booking_id=item.booking.id,
                user_id=item.booking.user_id,
                full_name=item.full_name,
                email=item.email,
                status=item.booking.status,
                booking_date=item.booking.booking_date,
                attended=item.booking.attended,
                rating=item.booking.rating,
                feedback=item.booking.feedback,
                cancelled_at=item.booking.cancelled_at,
                cancellation_reason=item.booking.cancellation_reason,
            )
            for item in roster.bookings
        ],
        waiting_list=[
            RosterWaitingItem(
                entry_id=item.entry.id,
                user_id=item.entry.user_id,
                full_name=item.full_name,
                email=item.email,
                position=item.entry.position,
                notified=item.entry.notified,
                notified_at=item.entry.notified_at,
                expires_at=item.entry.expires_at,
                created_at=item.entry.created_at,
            )
            for item in roster.waiting_list
        ],
    ))
