"""Status rules for scheduled classes.

The stored status is authoritative; what a viewer sees is derived from it
and the current time by the pure functions below.
"""

from datetime import datetime, timedelta

from classhub.core.config import settings
from classhub.models.scheduled_class import TERMINAL_STATUSES, ClassStatus, ClassView, ScheduledClass
from classhub.utils.exceptions import InvalidTransitionError


ALLOWED_TRANSITIONS: dict[ClassStatus, frozenset[ClassStatus]] = {
    ClassStatus.SCHEDULED: frozenset({ClassStatus.LIVE, ClassStatus.CANCELLED}),
    ClassStatus.LIVE: frozenset({ClassStatus.COMPLETED}),
    ClassStatus.COMPLETED: frozenset(),
    ClassStatus.CANCELLED: frozenset(),
}


def validate_transition(current: ClassStatus, new: ClassStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> new`` is allowed.

    Keeping the same status is accepted as a no-op.
    """
    current, new = ClassStatus(current), ClassStatus(new)
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot change class status from '{current.value}' to '{new.value}'."
        )


def effective_status(scheduled_class: ScheduledClass, now: datetime) -> ClassStatus:
    if (
        scheduled_class.status == ClassStatus.SCHEDULED
        and scheduled_class.start_time <= now <= scheduled_class.end_time
    ):
        return ClassStatus.LIVE
    return scheduled_class.status


def is_joinable(
    scheduled_class: ScheduledClass, now: datetime, window: timedelta | None = None
) -> bool:
    """A learner may open the meeting link from ``window`` before the start."""
    if window is None:
        window = timedelta(minutes=settings.JOIN_WINDOW_MINUTES)
    if scheduled_class.status in TERMINAL_STATUSES:
        return False
    return now >= scheduled_class.start_time - window


def is_open(scheduled_class: ScheduledClass, now: datetime) -> bool:
    """Still worth showing as a next/upcoming class."""
    return (
        effective_status(scheduled_class, now) not in TERMINAL_STATUSES
        and scheduled_class.end_time > now
    )


def class_view(scheduled_class: ScheduledClass, now: datetime) -> ClassView:
    return ClassView(
        **scheduled_class.model_dump(),
        effective_status=effective_status(scheduled_class, now),
        joinable=is_joinable(scheduled_class, now),
    )
