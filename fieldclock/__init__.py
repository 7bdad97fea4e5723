"""
fieldclock: attendance and work-session engine for field staff.

Check-in/out with geofenced work locations, schedule matching, pause and
resume accounting, special-case handling and continuous location
monitoring with automatic check-out.
"""

__version__ = "0.1.0"
