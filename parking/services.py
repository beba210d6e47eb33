from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from parking import crud
from parking.errors import NoPricingAvailableError
from parking.schemas import PricingCreate, PricingResponse, VehicleRequest, VehicleSessionResponse, VehicleStatusResponse
from parking.sessions import PlateLocks, SessionStatus, SessionTracker, VehicleSession, parse_timestamp, utcnow
from parking.tariff import PricingPolicy

DEPARTURE_PLACEHOLDER = "-"

# shared across requests so same-plate writes are serialized process-wide
plate_locks = PlateLocks()


def get_tracker(db: AsyncSession) -> SessionTracker:
    return SessionTracker(crud.SqlStorage(db), plate_locks)


def format_duration(value: timedelta) -> str:
    minutes = value // timedelta(minutes=1)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_session_response(session: VehicleSession) -> VehicleSessionResponse:
    return VehicleSessionResponse(
        session_id=session.id,
        plate=session.plate,
        entry_date=session.entry_time,
        departure_date=session.departure_time,
        is_active=session.is_active,
    )


def to_status_response(status: SessionStatus) -> VehicleStatusResponse:
    return VehicleStatusResponse(
        plate=status.plate,
        entry_date=status.entry_time.isoformat(),
        departure_date=status.departure_time.isoformat() if status.departure_time else DEPARTURE_PLACEHOLDER,
        duration=format_duration(status.elapsed),
        elapsed_minutes=status.elapsed // timedelta(minutes=1),
        billable_minutes=status.billable // timedelta(minutes=1),
        charge=status.charge,
        initial_block_value=status.initial_block_value,
    )


def to_pricing_response(policy: PricingPolicy) -> PricingResponse:
    return PricingResponse(
        effective_from=policy.effective_from,
        effective_to=policy.effective_to,
        grace_minutes=policy.grace_period // timedelta(minutes=1),
        initial_block_minutes=policy.initial_block // timedelta(minutes=1),
        initial_block_value=policy.initial_block_value,
        increment_minutes=policy.increment_unit // timedelta(minutes=1),
        increment_value=policy.increment_value,
    )


async def register_entry(db: AsyncSession, request: VehicleRequest) -> VehicleSessionResponse:
    session = await get_tracker(db).register_entry(request.plate, request.date)
    return to_session_response(session)


async def register_departure(db: AsyncSession, request: VehicleRequest) -> VehicleSessionResponse:
    session = await get_tracker(db).register_departure(request.plate, request.date)
    return to_session_response(session)


async def list_vehicles(db: AsyncSession, as_of: Optional[str] = None) -> List[VehicleStatusResponse]:
    statuses = await get_tracker(db).list_sessions(as_of)
    return [to_status_response(status) for status in statuses]


async def quote_vehicle(db: AsyncSession, plate: str, as_of: Optional[str] = None) -> VehicleStatusResponse:
    return to_status_response(await get_tracker(db).quote(plate, as_of))


async def create_pricing_policy(db: AsyncSession, request: PricingCreate) -> PricingResponse:
    policy = PricingPolicy(
        effective_from=parse_timestamp(request.effective_from),
        effective_to=parse_timestamp(request.effective_to) if request.effective_to else None,
        grace_period=timedelta(minutes=request.grace_minutes),
        initial_block=timedelta(minutes=request.initial_block_minutes),
        initial_block_value=request.initial_block_value,
        increment_unit=timedelta(minutes=request.increment_minutes),
        increment_value=request.increment_value,
    )
    return to_pricing_response(await crud.create_pricing(db, policy))


async def current_pricing(db: AsyncSession, as_of: Optional[str] = None) -> PricingResponse:
    instant: datetime = utcnow() if as_of is None else parse_timestamp(as_of)
    policy = await crud.get_effective_pricing(db, instant)
    if policy is None:
        raise NoPricingAvailableError(f"No pricing found for {instant.isoformat()}!")
    return to_pricing_response(policy)
