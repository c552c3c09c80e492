"""Vehicle availability checks against the booking API."""

from __future__ import annotations

import logging
from datetime import date

from shared.domain.value_objects import DateRange
from apps.rentals.domain.entities import Availability, Vehicle
from apps.rentals.domain.exceptions import (
    BoundaryUnavailableError,
    GatewayError,
    InvalidRangeError,
)
from apps.rentals.domain.ports import AvailabilityQuery
from apps.rentals.domain.session import BookingSession

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """
    Decides whether a vehicle is free for a period

    The range is validated locally first, so an invalid range never
    costs a remote call.
    """

    def __init__(self, query: AvailabilityQuery):
        self.query = query

    def check(self, vehicle_id: str, start_date: date | None, end_date: date | None) -> Availability:
        if start_date is None or end_date is None:
            raise InvalidRangeError("Both start and end dates are required")
        try:
            dates = DateRange(start_date, end_date)
        except (TypeError, ValueError) as e:
            raise InvalidRangeError(str(e)) from e

        try:
            result = self.query.query_availability(vehicle_id, dates.start_date, dates.end_date)
        except GatewayError as e:
            logger.error(f"Availability query for vehicle {vehicle_id} ({dates}) failed: {e}")
            raise BoundaryUnavailableError(
                f"Could not check availability of vehicle {vehicle_id}: {e}"
            ) from e

        if not result.available:
            logger.info(f"Vehicle {vehicle_id} unavailable for {dates}: {result.reason}")
        return result

    def select_vehicle(self, session: BookingSession, vehicle: Vehicle) -> Availability:
        """Attach the vehicle to the session only if it is free for the session's dates"""
        if session.date_range is None:
            raise InvalidRangeError("Choose rental dates before selecting a vehicle")

        availability = self.check(
            vehicle.id,
            session.date_range.start_date,
            session.date_range.end_date,
        )
        if availability.available:
            session.set_vehicle(vehicle)
        return availability
