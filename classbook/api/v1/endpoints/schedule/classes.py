from classbook.api.v1.endpoints.schedule.common import *

router = APIRouter()


@router.post("/classes", response_model=List[ClassOccurrence], status_code=status.HTTP_201_CREATED)
async def create_class(
    class_data: ClassCreate = Body(...),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """
    Create Class

    Creates the class definition and every session produced by its recurrence
    rule in a single transaction. If any session overlaps another active
    session of the trainer, nothing is created.

    Permissions:
        - Staff for any trainer; trainers only for themselves.

    Request Body (ClassCreate):
        {
          "name": "string",
          "description": "string (optional)",
          "category": "string",
          "duration": integer (minutes, >0),
          "capacity": integer (>0),
          "trainer_id": integer,
          "schedule_start": "datetime (naive = local schedule timezone)",
          "recurrence_rule": "FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=6 (optional)",
          "occurrence_count_cap": integer (optional, 1-366)
        }

    Returns:
        List[ClassOccurrence]: The created sessions in chronological order.

    Raises:
        HTTPException 400: Invalid recurrence rule.
        HTTPException 403: Caller may not schedule for this trainer.
        HTTPException 404: Trainer not found.
        HTTPException 409: Trainer schedule conflict.
    """
    return await service.create_class(db, class_data, principal)


@router.get("/classes", response_model=PaginatedClassOccurrences)
async def list_classes(
    start_date: Optional[datetime] = Query(None, description="Sessions starting at or after"),
    end_date: Optional[datetime] = Query(None, description="Sessions starting at or before"),
    trainer_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None, description="Case-insensitive partial match"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """
    List Active Sessions

    Served through the schedule cache: results may lag recent writes by up
    to the cache TTL.
    """
    filters = ClassListFilters(
        start_date=start_date,
        end_date=end_date,
        trainer_id=trainer_id,
        category=category
    )
    return await service.list_classes(db, filters, page=page, page_size=page_size)


@router.get("/classes/{occurrence_id}", response_model=ClassOccurrence)
async def get_class(
    occurrence_id: int = Path(..., description="ID of the class session"),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    return await service.get_class(db, occurrence_id)


@router.patch("/classes/{occurrence_id}", response_model=ClassOccurrence)
async def update_class(
    occurrence_id: int = Path(..., description="ID of the class session"),
    class_data: ClassUpdate = Body(...),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """
    Update Class Session

    Changing the start, duration or trainer re-checks conflicts against the
    trainer's other active sessions.

    A duration change is stored on the shared class template, but only this
    session's end time is recomputed. Sibling sessions keep their stored
    start and end until they are edited themselves.

    Permissions:
        - Staff, or the trainer who runs the session.
    """
    return await service.update_class(db, occurrence_id, class_data, principal)


@router.post("/classes/{occurrence_id}/deactivate", response_model=ClassOccurrence)
async def deactivate_class(
    occurrence_id: int = Path(..., description="ID of the class session"),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """
    Deactivate Class Session

    Existing bookings are kept unchanged.

    Permissions:
        - Admins only.
    """
    return await service.deactivate_class(db, occurrence_id, principal)


@router.get("/classes/{occurrence_id}/bookings", response_model=List[ClassBooking])
async def get_class_bookings(
    occurrence_id: int = Path(..., description="ID of the class session"),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_async_db),
    principal: Principal = Depends(get_current_principal),
    service: ClassSchedulingService = Depends(get_scheduling_service)
) -> Any:
    """
    Get Session Roster

    Permissions:
        - Staff, or the trainer who runs the session.
    """
    return await service.list_occurrence_bookings(db, occurrence_id, principal, status=booking_status)
