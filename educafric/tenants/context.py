"""
Current school context.

The middleware sets it for each request; Celery tasks and signals read it.
Uses contextvars so it is safe for sync views, async views and tasks alike.
"""
import contextvars

_current_school: contextvars.ContextVar = contextvars.ContextVar(
    'current_school', default=None
)


def set_current_school(school):
    _current_school.set(school)


def get_current_school():
    """Return the current school, or None when not set."""
    return _current_school.get()


def clear_current_school():
    _current_school.set(None)
