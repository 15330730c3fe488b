from leadflow.repositories.leads import LeadRepository, LeadNotFoundError
from leadflow.repositories.activity import ActivityLog
from leadflow.repositories.bookings import BookingEventRepository

__all__ = ["LeadRepository", "LeadNotFoundError", "ActivityLog", "BookingEventRepository"]
