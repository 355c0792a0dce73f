from .attendance_ledger import AttendanceLedger, SessionCloseResult
from .timer import IDLE_DISPLAY, AttendanceTimer, format_elapsed, timer_display
