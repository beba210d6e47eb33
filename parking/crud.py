from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from parking.errors import ValidationError
from parking.models import ParkingSession, PricingRecord
from parking.sessions import VehicleSession
from parking.tariff import PricingPolicy
import logging


def _to_session(row: ParkingSession) -> VehicleSession:
    return VehicleSession(
        plate=row.license_plate,
        entry_time=row.entry_timestamp,
        departure_time=row.exit_timestamp,
        id=row.id,
    )


def _whole_minutes(name: str, value: timedelta) -> int:
    minutes, remainder = divmod(value, timedelta(minutes=1))
    if remainder:
        raise ValidationError(f"{name} must be a whole number of minutes to be stored, got {value}")
    return minutes


def _to_policy(row: PricingRecord) -> PricingPolicy:
    return PricingPolicy(
        effective_from=row.effective_from,
        effective_to=row.effective_to,
        grace_period=timedelta(minutes=row.grace_minutes),
        initial_block=timedelta(minutes=row.initial_block_minutes),
        initial_block_value=Decimal(row.initial_block_value),
        increment_unit=timedelta(minutes=row.increment_minutes),
        increment_value=Decimal(row.increment_value),
    )


async def get_active_parking_session(db: AsyncSession, plate_number: str) -> Optional[VehicleSession]:
    logging.info(f"Searching for active session for plate number: {plate_number}")

    result = await db.execute(
        select(ParkingSession)
        .where(ParkingSession.license_plate == plate_number, ParkingSession.is_active == True)  # noqa: E712
        .order_by(ParkingSession.entry_timestamp.desc())
    )
    row = result.scalars().first()

    if row is None:
        logging.info(f"No active session found for plate: {plate_number}")
        return None

    logging.info(f"Found active session ID: {row.id} for plate: {plate_number}")
    return _to_session(row)


async def create_parking_session(db: AsyncSession, session: VehicleSession) -> VehicleSession:
    try:
        row = ParkingSession(
            license_plate=session.plate,
            entry_timestamp=session.entry_time,
            exit_timestamp=session.departure_time,
            is_active=session.departure_time is None,
        )
        db.add(row)
        await db.commit()
        await db.refresh(row)
        return _to_session(row)
    except SQLAlchemyError as e:
        await db.rollback()
        raise e


async def update_parking_session(db: AsyncSession, session: VehicleSession) -> VehicleSession:
    try:
        row = await db.get(ParkingSession, session.id)
        if row is None:
            raise LookupError(f"Parking session {session.id} does not exist")

        row.exit_timestamp = session.departure_time
        row.is_active = session.departure_time is None
        await db.commit()
        await db.refresh(row)
        return _to_session(row)
    except SQLAlchemyError as e:
        await db.rollback()
        raise e


async def get_all_parking_sessions(db: AsyncSession) -> List[VehicleSession]:
    result = await db.execute(select(ParkingSession).order_by(ParkingSession.entry_timestamp, ParkingSession.id))
    return [_to_session(row) for row in result.scalars().all()]


async def get_effective_pricing(db: AsyncSession, instant: datetime) -> Optional[PricingPolicy]:
    result = await db.execute(
        select(PricingRecord)
        .where(
            PricingRecord.effective_from <= instant,
            or_(PricingRecord.effective_to.is_(None), PricingRecord.effective_to > instant),
        )
        .order_by(PricingRecord.effective_from.desc())
    )
    row = result.scalars().first()

    if row is None:
        logging.warning(f"No pricing policy effective at {instant.isoformat()}")
        return None
    return _to_policy(row)


async def create_pricing(db: AsyncSession, policy: PricingPolicy) -> PricingPolicy:
    try:
        row = PricingRecord(
            effective_from=policy.effective_from,
            effective_to=policy.effective_to,
            grace_minutes=_whole_minutes("grace_period", policy.grace_period),
            initial_block_minutes=_whole_minutes("initial_block", policy.initial_block),
            initial_block_value=policy.initial_block_value,
            increment_minutes=_whole_minutes("increment_unit", policy.increment_unit),
            increment_value=policy.increment_value,
        )
        db.add(row)
        await db.commit()
        await db.refresh(row)
        logging.info(f"Stored pricing policy {row.id} effective from {policy.effective_from.isoformat()}")
        return _to_policy(row)
    except SQLAlchemyError as e:
        await db.rollback()
        raise e


class SqlStorage:
    """Session storage backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_active_session_by_plate(self, plate: str) -> Optional[VehicleSession]:
        return await get_active_parking_session(self.db, plate)

    async def insert_session(self, session: VehicleSession) -> VehicleSession:
        return await create_parking_session(self.db, session)

    async def update_session(self, session: VehicleSession) -> VehicleSession:
        return await update_parking_session(self.db, session)

    async def find_effective_policy(self, instant: datetime) -> Optional[PricingPolicy]:
        return await get_effective_pricing(self.db, instant)

    async def list_all_sessions(self) -> List[VehicleSession]:
        return await get_all_parking_sessions(self.db)
