from sqlalchemy import Column, Integer, Numeric, Boolean, TIMESTAMP, String, Index
from parking.database import Base


class ParkingSession(Base):
    __tablename__ = "parking_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    license_plate = Column(String(20), nullable=False, index=True)
    entry_timestamp = Column(TIMESTAMP, nullable=False)
    exit_timestamp = Column(TIMESTAMP, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


# at most one active session per plate, enforced by the database as well
Index(
    "uq_parking_sessions_active_plate",
    ParkingSession.license_plate,
    unique=True,
    sqlite_where=ParkingSession.is_active == True,  # noqa: E712
    postgresql_where=ParkingSession.is_active == True,  # noqa: E712
)


class PricingRecord(Base):
    __tablename__ = "pricing_policies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    effective_from = Column(TIMESTAMP, nullable=False)
    effective_to = Column(TIMESTAMP, nullable=True)
    grace_minutes = Column(Integer, nullable=False, default=0)
    initial_block_minutes = Column(Integer, nullable=False)
    initial_block_value = Column(Numeric(10, 2), nullable=False)
    increment_minutes = Column(Integer, nullable=False)
    increment_value = Column(Numeric(10, 2), nullable=False)
