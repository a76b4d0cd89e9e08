"""Facility-wide closure endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Response, status

from clinic_scheduling.api.deps import Scheduler, not_found
from clinic_scheduling.core.exceptions import SchedulingValidationError
from clinic_scheduling.models.appointment import UnavailableBlock
from clinic_scheduling.schemas.appointment import UnavailableBlockCreate, UnavailableBlockRead
from clinic_scheduling.utils.time import to_clinic_time

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/unavailable-blocks",
    response_model=UnavailableBlockRead,
    status_code=status.HTTP_201_CREATED,
    summary="Close the facility",
)
def add_facility_block(data: UnavailableBlockCreate, scheduler: Scheduler) -> UnavailableBlockRead:
    """Close the whole facility (holiday, emergency) for every physician."""
    try:
        block = scheduler.add_unavailable_block(
            UnavailableBlock(
                start=to_clinic_time(data.start),
                end=to_clinic_time(data.end),
                reason=data.reason,
                description=data.description,
            )
        )
    except SchedulingValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    logger.info(f"Facility closed {block.start:%Y-%m-%d %H:%M} to {block.end:%Y-%m-%d %H:%M}")
    return UnavailableBlockRead.model_validate(block)


@router.get(
    "/unavailable-blocks",
    response_model=list[UnavailableBlockRead],
    summary="List facility closures",
)
def list_facility_blocks(scheduler: Scheduler) -> list[UnavailableBlockRead]:
    return [UnavailableBlockRead.model_validate(b) for b in scheduler.get_unavailable_blocks()]


@router.delete(
    "/unavailable-blocks/{block_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove facility closure",
)
def remove_facility_block(block_id: UUID, scheduler: Scheduler) -> Response:
    if not scheduler.remove_unavailable_block(block_id):
        raise not_found(f"Unavailable block {block_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
