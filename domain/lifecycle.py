"""Order lifecycle.

    pending -> accepted -> ready -> completed
    pending -> rejected

Only the shop owner moves an order's status. States are never skipped and
never reversed. The store accepts any status write, so whoever issues the
write checks it here first.

Either party may edit items while the order is active.
"""

from domain.models import Role, Status


class LifecycleError(ValueError):
    pass


ACTIVE = frozenset({Status.pending, Status.accepted, Status.ready})
TERMINAL = frozenset({Status.rejected, Status.completed})

TRANSITIONS: dict[Status, tuple[Status, ...]] = {
    Status.pending: (Status.accepted, Status.rejected),
    Status.accepted: (Status.ready,),
    Status.ready: (Status.completed,),
    Status.rejected: (),
    Status.completed: (),
}

# Statuses in which the shop may mark items in or out of stock.
REVIEWABLE = frozenset({Status.accepted, Status.ready})


def is_active(status: Status) -> bool:
    return status in ACTIVE


def is_terminal(status: Status) -> bool:
    return status in TERMINAL


def next_actions(status: Status) -> tuple[Status, ...]:
    return TRANSITIONS[status]


def can_transition(current: Status, target: Status, actor: Role) -> bool:
    if actor is not Role.owner:
        return False
    return target in TRANSITIONS[current]


def validate_transition(current: Status, target: Status, actor: Role) -> None:
    if actor is not Role.owner:
        raise LifecycleError(f"Only the shop owner can move an order to {target.value}.")
    if target not in TRANSITIONS[current]:
        raise LifecycleError(
            f"Cannot move order from {current.value} to {target.value}."
        )


def can_edit_items(status: Status) -> bool:
    return is_active(status)


def can_review_items(status: Status) -> bool:
    return status in REVIEWABLE
