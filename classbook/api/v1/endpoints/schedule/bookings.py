from classbook.api.v1.endpoints.schedule.common import *

router = APIRouter()


@router.post("/bookings", response_model=ClassBooking, status_code=status.HTTP_201_CREATED)
async def book_class(
    booking_data: BookClassRequest = Body(...),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """
    Book Class Session

    Booking again after a cancellation reuses the existing booking.

    Permissions:
        - Members only for themselves; staff for any member.

    Raises:
        HTTPException 400: Session is not active.
        HTTPException 403: Booking for someone else, or membership denies it.
        HTTPException 404: Member or session not found.
        HTTPException 409: Session full, or booking already confirmed.
    """
    return await service.book_class(db, booking_data.member_id, booking_data.occurrence_id, principal)


@router.post("/bookings/{booking_id}/cancel", response_model=ClassBooking)
async def cancel_booking(
    booking_id: int = Path(..., description="ID of the booking"),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """
    Cancel Booking

    Checks run in order: existence, state, ownership. A booking that is
    already cancelled answers 400 to any caller.

    Raises:
        HTTPException 404: Booking not found.
        HTTPException 400: Booking already cancelled.
        HTTPException 403: Booking belongs to another member.
    """
    return await service.cancel_booking(db, booking_id, principal)


@router.get("/members/{member_id}/bookings", response_model=List[MemberClassBooking])
async def get_member_bookings(
    member_id: int = Path(..., description="ID of the member"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """Booking history of a member, newest first."""
    return await service.list_member_bookings(db, member_id, principal, skip=skip, limit=limit)
