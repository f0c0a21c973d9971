"""EventDesk - event, attendee and task admin console."""

__version__ = '0.1.0'
