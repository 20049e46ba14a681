from classgrid.models.activity_log import ActivityLog  # noqa: F401
from classgrid.models.roster_batch import RosterBatch  # noqa: F401
from classgrid.models.timetable_entry import TimetableEntry  # noqa: F401
