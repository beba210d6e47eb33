import asyncio
from dataclasses import replace
from datetime import datetime
from itertools import count
from typing import Dict, List, Optional

from parking.sessions import VehicleSession
from parking.tariff import PricingPolicy


class InMemoryStorage:
    """Dict-backed storage, for tests and embedding without a database."""

    def __init__(self, policies: Optional[List[PricingPolicy]] = None):
        self._sessions: Dict[int, VehicleSession] = {}
        self._policies: List[PricingPolicy] = list(policies or [])
        self._ids = count(1)

    def add_policy(self, policy: PricingPolicy) -> None:
        self._policies.append(policy)

    async def find_active_session_by_plate(self, plate: str) -> Optional[VehicleSession]:
        await asyncio.sleep(0)
        for session in self._sessions.values():
            if session.plate == plate and session.is_active:
                return replace(session)
        return None

    async def insert_session(self, session: VehicleSession) -> VehicleSession:
        await asyncio.sleep(0)
        stored = replace(session, id=next(self._ids))
        self._sessions[stored.id] = stored
        return replace(stored)

    async def update_session(self, session: VehicleSession) -> VehicleSession:
        if session.id not in self._sessions:
            raise KeyError(f"Unknown session id {session.id}")
        self._sessions[session.id] = replace(session)
        return replace(session)

    async def find_effective_policy(self, instant: datetime) -> Optional[PricingPolicy]:
        # overlapping windows: latest start wins
        effective = [p for p in self._policies if p.is_effective_at(instant)]
        return max(effective, key=lambda p: p.effective_from, default=None)

    async def list_all_sessions(self) -> List[VehicleSession]:
        return [replace(s) for s in self._sessions.values()]
