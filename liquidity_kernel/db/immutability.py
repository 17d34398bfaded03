"""
ORM-Level Immutability Enforcement for closed redemption epochs.

A redemption summary whose ``total_shares_processed`` is non-zero belongs to
a closed epoch. Lender records are caught up from these rows at any later
time, so their figures must never change once closed:

    session.flush()
         |
         v
    [before_update] --> _check_redemption_summary_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_redemption_summary_delete() ---------^

The transition that closes an epoch (processed 0 -> >0) is itself allowed.
Deleting a summary is never allowed.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from liquidity_kernel.exceptions import ImmutabilityViolationError
from liquidity_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_SUMMARY_FIELDS = (
    "total_shares_requested",
    "total_shares_processed",
    "total_amount_processed",
)


def _was_closed(target) -> bool:
    history = get_history(target, "total_shares_processed")
    if history.deleted:
        return (history.deleted[0] or 0) > 0
    return (target.total_shares_processed or 0) > 0 and not history.added


def _check_redemption_summary_immutability(mapper, connection, target):
    """Reject changes to a summary that was already closed before this flush."""
    if not _was_closed(target):
        return

    changed = [f for f in _SUMMARY_FIELDS if get_history(target, f).has_changes()]
    if not changed:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "epoch_immutability",
            "entity_type": "EpochRedemptionSummary",
            "entity_id": str(target.id),
            "epoch_id": target.epoch_id,
            "fields": changed,
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="EpochRedemptionSummary",
        entity_id=str(target.id),
        reason=f"epoch {target.epoch_id} is closed; cannot change {', '.join(changed)}",
    )


def _check_redemption_summary_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "epoch_immutability",
            "entity_type": "EpochRedemptionSummary",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="EpochRedemptionSummary",
        entity_id=str(target.id),
        reason="redemption summaries cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """
    Register immutability listeners. Safe to call more than once.

    Call after models are imported and before any flush.
    """
    from liquidity_kernel.models.tranche import EpochRedemptionSummaryModel

    listeners = (
        ("before_update", _check_redemption_summary_immutability),
        ("before_delete", _check_redemption_summary_delete),
    )
    for name, fn in listeners:
        if not event.contains(EpochRedemptionSummaryModel, name, fn):
            event.listen(EpochRedemptionSummaryModel, name, fn)
