"""Constants and defaults.

Note: Keep constants here to avoid magic values spread across code.
"""

SCAN_CODE_PREFIX = "ATTENDANCE_APP_STUDENT"
SCAN_CODE_RANDOM_BYTES = 8

# Query-string keys accepted when listing sessions.
SESSION_FILTER_KEYS = ("class_id", "teacher_id", "status", "attendance_type", "session_date")

# Fields an administrative correction may change on a record.
RECORD_UPDATE_FIELDS = ("status", "marked_at")
