"""Maintenance of the condition history of a network filesystem."""

from __future__ import annotations

from ..models.domain.networkfs import NetworkFSCondition

__all__ = ["update_conditions"]


def update_conditions(
    conditions: list[NetworkFSCondition], condition: NetworkFSCondition
) -> list[NetworkFSCondition]:
    """Record a condition in a condition history.

    The history holds at most one condition of each type. A new type is
    appended. An existing condition of the same type is replaced in place,
    unless its status, reason, and message are all unchanged, in which case it
    is kept as-is so that its transition time stays the same.

    Parameters
    ----------
    conditions
        Existing condition history. Not modified.
    condition
        Condition to record.

    Returns
    -------
    list of NetworkFSCondition
        New condition history.
    """
    result = list(conditions)
    for i, existing in enumerate(result):
        if existing.type != condition.type:
            continue
        if (
            existing.status == condition.status
            and existing.reason == condition.reason
            and existing.message == condition.message
        ):
            return result
        result[i] = condition
        return result
    result.append(condition)
    return result
