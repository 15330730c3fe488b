from leadflow.models.lead import Lead, LeadStatus
from leadflow.models.audit import ActivityEntry
from leadflow.models.run import JobRun
from leadflow.models.booking import BookingEvent

__all__ = ["Lead", "LeadStatus", "ActivityEntry", "JobRun", "BookingEvent"]
