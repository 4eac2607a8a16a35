"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .availability import AvailabilityReport, AvailabilityService
from .booking_coordinator import BookingCoordinator
from .protocols import BookingReaderWriterProtocol, BookingStoreProtocol, ResourceStoreProtocol

__all__ = [
    "AvailabilityReport",
    "AvailabilityService",
    "BookingCoordinator",
    "BookingReaderWriterProtocol",
    "BookingStoreProtocol",
    "ResourceStoreProtocol",
]
