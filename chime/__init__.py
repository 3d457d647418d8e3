"""
Chime - calendar alert daemon

Root package for the Chime calendar alert engine, containing shared helpers and
the alert scheduling subsystem.

Core modules:
- audio: Reminder tone rendering and playback
- datetime_utils: Instant parsing and epoch-millisecond conversion
- utils: Environment-style value parsing
- alerts: Alert computation, acknowledgment store, scheduling session and feeds
"""

__version__ = "0.4.2"
