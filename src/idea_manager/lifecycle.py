"""Idea status workflow.

Two independent transition paths exist:

- the linear advance, which walks submitted -> in-review -> in-refinement
  -> implemented -> closed one step at a time;
- the direct selector, which lets an admin set any of ``DIRECT_STATUSES``
  regardless of the current status.
"""

from typing import Any

from idea_manager.errors import ValidationFailed
from idea_manager.models import Status

LINEAR_TRANSITIONS: dict[Status, Status] = {
    Status.SUBMITTED: Status.IN_REVIEW,
    Status.IN_REVIEW: Status.IN_REFINEMENT,
    Status.IN_REFINEMENT: Status.IMPLEMENTED,
    Status.IMPLEMENTED: Status.CLOSED,
}

DIRECT_STATUSES: tuple[Status, ...] = (
    Status.SUBMITTED,
    Status.IN_REVIEW,
    Status.MERGED,
    Status.PARKED,
    Status.IMPLEMENTED,
)


def next_status(current: Any) -> Status:
    """Return the status that follows ``current`` in the linear workflow.

    Total over any input: statuses with no outgoing linear transition
    (closed, merged, parked) and unrecognised values return ``submitted``.
    """
    try:
        status = Status(current)
    except ValueError:
        return Status.SUBMITTED
    return LINEAR_TRANSITIONS.get(status, Status.SUBMITTED)


def validate_direct_status(value: Any) -> Status:
    """Return ``value`` as a Status if the direct selector offers it."""
    try:
        status = Status(value)
    except ValueError:
        status = None
    if status not in DIRECT_STATUSES:
        allowed = ", ".join(s.value for s in DIRECT_STATUSES)
        raise ValidationFailed(
            f"Status {value!r} cannot be set directly",
            {"status": [f"Must be one of: {allowed}"]},
        )
    return status
