"""
Trip-completion database models.

Four parallel record sets (standard, rental, outstation, airport) written by
the external trip-execution system. Same shape, different origin table.
Read-only here; a trip must live in exactly one of them.
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, Index
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base


class TripCompletionMixin:
    """Common columns of every trip-completion table."""

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Plain id, no foreign key: deleting a driver must not touch trip history
    driver_id = Column(Integer, nullable=False)

    completed_at = Column(DateTime(timezone=True), nullable=False)

    # Driver's earned payout for the trip; NULL counts as zero
    total_amount_owed = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @declared_attr
    def __table_args__(cls):
        return (Index(f"ix_{cls.__tablename__}_driver_completed", "driver_id", "completed_at"),)

    def __repr__(self):
        return (
            f"<{type(self).__name__}(id={self.id}, driver_id={self.driver_id}, "
            f"owed={self.total_amount_owed})>"
        )


class StandardTripCompletion(TripCompletionMixin, Base):
    __tablename__ = "standard_trip_completions"


class RentalTripCompletion(TripCompletionMixin, Base):
    __tablename__ = "rental_trip_completions"


class OutstationTripCompletion(TripCompletionMixin, Base):
    __tablename__ = "outstation_trip_completions"


class AirportTripCompletion(TripCompletionMixin, Base):
    __tablename__ = "airport_trip_completions"


# Every source the payout summarizer reads, keyed by trip category
TRIP_COMPLETION_SOURCES = {
    "standard": StandardTripCompletion,
    "rental": RentalTripCompletion,
    "outstation": OutstationTripCompletion,
    "airport": AirportTripCompletion,
}
