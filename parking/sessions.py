import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Protocol, Union

from parking.errors import ConflictError, NoPricingAvailableError, NotFoundError, ValidationError
from parking.tariff import PricingPolicy, evaluate

Timestamp = Union[datetime, str, None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


@dataclass
class VehicleSession:
    plate: str
    entry_time: datetime
    departure_time: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.departure_time is None

    def departed_by(self, instant: datetime) -> bool:
        return self.departure_time is not None and self.departure_time <= instant

    def reference_time(self, now: datetime) -> datetime:
        # a departure after `now` has not happened yet
        return self.departure_time if self.departed_by(now) else now


@dataclass(frozen=True)
class SessionStatus:
    plate: str
    entry_time: datetime
    departure_time: Optional[datetime]
    elapsed: timedelta
    billable: timedelta
    charge: Decimal
    initial_block_value: Decimal


class SessionStorage(Protocol):
    async def find_active_session_by_plate(self, plate: str) -> Optional[VehicleSession]: ...

    async def insert_session(self, session: VehicleSession) -> VehicleSession: ...

    async def update_session(self, session: VehicleSession) -> VehicleSession: ...

    async def find_effective_policy(self, instant: datetime) -> Optional[PricingPolicy]: ...

    async def list_all_sessions(self) -> List[VehicleSession]: ...


def normalize_plate(plate: Optional[str]) -> str:
    if plate is None or not plate.strip():
        raise ValidationError("Invalid data: plate is required")
    return plate.strip().upper()


def parse_timestamp(value: Timestamp, *, plate: str = "") -> datetime:
    """Accept a datetime or an ISO 8601 string; return naive UTC, whole seconds."""
    if isinstance(value, str):
        if not value.strip():
            raise ValidationError("Invalid data: date is required", plate=plate)
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Invalid data: unparseable date {value!r}", plate=plate)
    if not isinstance(value, datetime):
        raise ValidationError("Invalid data: date is required", plate=plate)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)


class PlateLocks:
    """One asyncio.Lock per plate, shared by every tracker built with it.

    A plate's lock is dropped once its last holder or waiter leaves.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, plate: str):
        lock = self._locks.setdefault(plate, asyncio.Lock())
        self._users[plate] = self._users.get(plate, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[plate] -= 1
            if not self._users[plate]:
                del self._users[plate]
                del self._locks[plate]


class SessionTracker:
    def __init__(
        self,
        storage: SessionStorage,
        locks: Optional[PlateLocks] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._storage = storage
        self._locks = locks if locks is not None else PlateLocks()
        self._clock = clock

    async def register_entry(self, plate: Optional[str], entry_time: Timestamp) -> VehicleSession:
        plate = normalize_plate(plate)
        entry_time = parse_timestamp(entry_time, plate=plate)

        async with self._locks.hold(plate):
            if await self._storage.find_active_session_by_plate(plate) is not None:
                logging.warning(f"Entry rejected, vehicle {plate} is already parked")
                raise ConflictError(f"Vehicle with plate {plate} is already parked!", plate=plate)

            session = await self._storage.insert_session(VehicleSession(plate, entry_time))

        logging.info(f"Registered entry for {plate} at {entry_time.isoformat()}")
        return session

    async def register_departure(self, plate: Optional[str], departure_time: Timestamp) -> VehicleSession:
        plate = normalize_plate(plate)
        departure_time = parse_timestamp(departure_time, plate=plate)

        async with self._locks.hold(plate):
            session = await self._storage.find_active_session_by_plate(plate)
            if session is None:
                logging.warning(f"Departure rejected, no active session for {plate}")
                raise NotFoundError(f"No vehicle with plate {plate} found!", plate=plate)
            if departure_time < session.entry_time:
                raise ValidationError(
                    f"Departure {departure_time.isoformat()} precedes entry {session.entry_time.isoformat()}",
                    plate=plate,
                )

            session.departure_time = departure_time
            session = await self._storage.update_session(session)

        logging.info(f"Registered departure for {plate} at {departure_time.isoformat()}")
        return session

    async def list_sessions(self, as_of: Timestamp = None) -> List[SessionStatus]:
        as_of = self._as_of(as_of)
        policies = {as_of: await self._policy_at(as_of)}

        statuses = []
        for session in await self._storage.list_all_sessions():
            if session.entry_time > as_of:
                continue  # not yet entered at as_of
            reference = session.reference_time(as_of)
            if reference not in policies:
                policies[reference] = await self._policy_at(reference)
            statuses.append(self._status(session, reference, policies[reference]))
        return statuses

    async def quote(self, plate: Optional[str], as_of: Timestamp = None) -> SessionStatus:
        plate = normalize_plate(plate)
        as_of = self._as_of(as_of)

        session = await self._storage.find_active_session_by_plate(plate)
        if session is None:
            raise NotFoundError(f"No vehicle with plate {plate} found!", plate=plate)
        return self._status(session, as_of, await self._policy_at(as_of))

    def _as_of(self, as_of: Timestamp) -> datetime:
        return self._clock() if as_of is None else parse_timestamp(as_of)

    async def _policy_at(self, instant: datetime) -> PricingPolicy:
        policy = await self._storage.find_effective_policy(instant)
        if policy is None:
            logging.error(f"No pricing policy effective at {instant.isoformat()}")
            raise NoPricingAvailableError(f"No pricing found for {instant.isoformat()}!")
        return policy

    @staticmethod
    def _status(session: VehicleSession, reference: datetime, policy: PricingPolicy) -> SessionStatus:
        elapsed, billable, charge = evaluate(session.entry_time, reference, policy)
        return SessionStatus(
            plate=session.plate,
            entry_time=session.entry_time,
            departure_time=session.departure_time if session.departed_by(reference) else None,
            elapsed=elapsed,
            billable=billable,
            charge=charge,
            initial_block_value=policy.initial_block_value,
        )
