import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.db.models.availability import AvailabilityRuleModel

logger = logging.getLogger(__name__)


async def get_rule_for_day(
    db: AsyncSession, doctor_id: int, day_of_week: int
) -> Optional[AvailabilityRuleModel]:
    """
    Fetch the active weekly rule of a doctor for one day of the week.

    Args:
        db: Database session
        doctor_id: Doctor (user) id
        day_of_week: 0 = Sunday .. 6 = Saturday

    Returns:
        The rule, or None when the doctor does not work that day
    """
    stmt = (
        select(AvailabilityRuleModel)
        .where(
            AvailabilityRuleModel.doctor_id == doctor_id,
            AvailabilityRuleModel.day_of_week == day_of_week,
            AvailabilityRuleModel.is_active.is_(True),
        )
        .order_by(AvailabilityRuleModel.id)
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_rules_for_doctor(
    db: AsyncSession, doctor_id: int
) -> List[AvailabilityRuleModel]:
    stmt = (
        select(AvailabilityRuleModel)
        .where(AvailabilityRuleModel.doctor_id == doctor_id)
        .order_by(AvailabilityRuleModel.day_of_week, AvailabilityRuleModel.start_time)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def replace_all(
    db: AsyncSession, doctor_id: int, rules: Sequence[Dict[str, Any]]
) -> List[AvailabilityRuleModel]:
    """
    Replace the doctor's whole weekly schedule in a single transaction.

    The caller validates ``rules`` beforehand; this function only guarantees
    that readers see either the old set or the new one.

    Args:
        db: Database session
        doctor_id: Doctor (user) id
        rules: Dicts with day_of_week, start_time, end_time,
            slot_duration_minutes and is_active

    Returns:
        The newly inserted rules
    """
    logger.info(f"CRUD: Replacing availability of doctor {doctor_id} with {len(rules)} rules")
    new_rules = [AvailabilityRuleModel(doctor_id=doctor_id, **rule) for rule in rules]
    try:
        await db.execute(
            delete(AvailabilityRuleModel).where(AvailabilityRuleModel.doctor_id == doctor_id)
        )
        db.add_all(new_rules)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(
            f"CRUD: Failed to replace availability for doctor {doctor_id}: {e}",
            exc_info=True,
        )
        raise

    for rule in new_rules:
        await db.refresh(rule)
    return new_rules
