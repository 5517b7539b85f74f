import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meetslot.api.deps import get_current_host, get_scheduling_service
from meetslot.api.schemas.scheduling import AvailableSlotsResponse, SlotOut
from meetslot.core.db import get_session
from meetslot.core.errors import NotFoundError, ValidationError
from meetslot.models.availability_rule import (
    AvailabilityRule,
    AvailabilityRuleCreate,
    AvailabilityRulePublic,
    AvailabilityRuleUpdate,
)
from meetslot.models.host import Host
from meetslot.services.scheduling_service import SchedulingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/availability", tags=["availability"])


def _check_times(rule: AvailabilityRule) -> None:
    if rule.start_time >= rule.end_time:
        raise ValidationError("End time must be after start time", param="end_time")


async def _get_rule(session: AsyncSession, host: Host, rule_id: int) -> AvailabilityRule:
    rule = await session.get(AvailabilityRule, rule_id)
    if rule is None or rule.host_id != host.id:
        raise NotFoundError("Availability rule not found")
    return rule


@router.get("/rules", response_model=list[AvailabilityRulePublic])
async def list_rules(
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> list[AvailabilityRule]:
    result = await session.execute(
        select(AvailabilityRule)
        .where(AvailabilityRule.host_id == current_host.id)
        .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
    )
    return list(result.scalars().all())


@router.post("/rules", response_model=AvailabilityRulePublic, status_code=status.HTTP_201_CREATED)
async def create_rule(
    body: AvailabilityRuleCreate,
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> AvailabilityRule:
    rule = AvailabilityRule(host_id=current_host.id, **body.model_dump())
    _check_times(rule)
    session.add(rule)
    await session.flush()
    await session.refresh(rule)
    logger.info("Availability rule created: %s", rule.id)
    return rule


@router.get("/rules/{rule_id}", response_model=AvailabilityRulePublic)
async def get_rule(
    rule_id: int,
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> AvailabilityRule:
    return await _get_rule(session, current_host, rule_id)


@router.put("/rules/{rule_id}", response_model=AvailabilityRulePublic)
async def update_rule(
    rule_id: int,
    body: AvailabilityRuleUpdate,
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> AvailabilityRule:
    rule = await _get_rule(session, current_host, rule_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(rule, field, value)
    _check_times(rule)
    session.add(rule)
    await session.flush()
    await session.refresh(rule)
    logger.info("Availability rule updated: %s", rule.id)
    return rule


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: int,
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> None:
    rule = await _get_rule(session, current_host, rule_id)
    await session.delete(rule)
    await session.flush()
    logger.info("Availability rule deleted: %s", rule_id)


@router.get("/slots", response_model=AvailableSlotsResponse)
async def my_slots(
    date_param: date = Query(..., alias="date"),
    duration: int | None = Query(None),
    current_host: Host = Depends(get_current_host),
    scheduler: SchedulingService = Depends(get_scheduling_service),
) -> AvailableSlotsResponse:
    """Bookable slots for the signed-in host on one date (UTC)."""
    slots = await scheduler.get_available_slots(current_host.id, date_param, duration)
    return AvailableSlotsResponse(
        host_id=current_host.id,
        date=date_param.isoformat(),
        slots=[SlotOut(start_time=s.start, end_time=s.end) for s in slots],
    )
