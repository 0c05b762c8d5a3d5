"""Application-wide constants for the scheduling engine."""

from __future__ import annotations

# Conflict messages
PAST_TIME_MESSAGE = "Cannot schedule sessions in the past"
TOO_SHORT_NOTICE_MESSAGE = "Sessions must be booked at least {hours:g} hours in advance"
OUTSIDE_AVAILABILITY_MESSAGE = "Selected time is outside tutor's available hours"
TUTOR_BUSY_MESSAGE = "Tutor has another session at this time"
STUDENT_BUSY_MESSAGE = "Student has another session at this time"

# Constraint names for database-level overlap guards
TUTOR_OVERLAP_CONSTRAINT = "sessions_no_overlap_per_tutor"
STUDENT_OVERLAP_CONSTRAINT = "sessions_no_overlap_per_student"

# Notification event types
SESSION_BOOKED = "session_booked"
SESSION_UPDATED = "session_updated"
SESSION_CANCELLED = "session_cancelled"
SESSION_STARTED = "session_started"
SESSION_COMPLETED = "session_completed"
SESSION_NO_SHOW = "session_no_show"

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000

# API Documentation
API_TITLE = "TutorHub Scheduling API"
API_DESCRIPTION = "Session scheduling and conflict-resolution engine for TutorHub"
API_VERSION = "1.0.0"
