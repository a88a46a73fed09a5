"""Materialization of recurring rules into concrete transactions.

``materialize`` is a pure function of its inputs: it never touches the save
file and never mutates the rules it is given. The caller persists the
returned rules and merges the new transactions.
"""

import uuid
from dataclasses import replace
from datetime import date
from typing import Callable, Iterable, List, Optional, Tuple

from finance_tracker.dates import (
    DateLike, advance, epoch_millis, format_date, is_same_day, is_strictly_before, local_date, parse_date
)
from finance_tracker.errors import MalformedRuleError
from finance_tracker.logging_config import get_logger
from finance_tracker.models import FREQUENCIES, MaterializationResult, RecurringRule, Transaction

logger = get_logger("recurring")


def new_id() -> str:
    return str(uuid.uuid4())


def due_occurrences(rule: RecurringRule, today: date) -> Tuple[List[date], date]:
    """Return every occurrence on or before ``today`` and the cursor after them.

    Raises MalformedRuleError when the cursor or frequency cannot be read.
    """
    try:
        cursor = parse_date(rule.next_due_date)
    except ValueError as e:
        raise MalformedRuleError(rule.id, f"invalid next_due_date {rule.next_due_date!r}") from e

    if rule.frequency not in FREQUENCIES:
        raise MalformedRuleError(rule.id, f"unknown frequency {rule.frequency!r}")

    occurrences = []
    try:
        while is_strictly_before(cursor, today) or is_same_day(cursor, today):
            occurrences.append(cursor)
            cursor = advance(cursor, rule.frequency)
    except OverflowError as e:
        raise MalformedRuleError(rule.id, "schedule runs past the last representable date") from e
    return occurrences, cursor


def _instance(rule: RecurringRule, occurrence: date, created_at: int, id_factory) -> Transaction:
    template = rule.template
    return Transaction(
        id=id_factory(),
        amount=template.amount,
        category=template.category,
        payment_mode=template.payment_mode,
        t_date=occurrence,
        note=template.note,
        created_at=created_at,
        t_type=template.t_type or "expense",
    )


def materialize(
        rules: Iterable[RecurringRule],
        reference_time: DateLike,
        id_factory: Optional[Callable[[], str]] = None,
) -> MaterializationResult:
    """Generate every due instance for ``rules`` as of ``reference_time``.

    Rules are handled independently and in order. Each active rule emits one
    transaction per occurrence from its ``next_due_date`` through the local
    date of ``reference_time`` (oldest first), then its cursor moves to the
    first occurrence after that date and ``last_run`` is stamped. Rules that
    are inactive, not yet due, or malformed come back as the same object.

    Running again with the returned rules and the same reference time
    produces nothing.
    """
    id_factory = id_factory or new_id
    today = local_date(reference_time)
    created_at = epoch_millis(reference_time)
    result = MaterializationResult()

    for rule in rules:
        if not rule.active:
            result.updated_rules.append(rule)
            continue

        try:
            occurrences, cursor = due_occurrences(rule, today)
        except MalformedRuleError as e:
            logger.warning("Skipping recurring rule: %s", e)
            result.updated_rules.append(rule)
            continue

        if not occurrences:
            result.updated_rules.append(rule)
            continue

        result.new_transactions.extend(
            _instance(rule, occurrence, created_at, id_factory) for occurrence in occurrences
        )
        result.updated_rules.append(
            replace(rule, next_due_date=format_date(cursor), last_run=format_date(today))
        )
        logger.debug("Rule %s produced %d occurrence(s), next due %s",
                     rule.id, len(occurrences), format_date(cursor))

    if result.generated_count:
        logger.info("Materialized %d recurring transaction(s) as of %s",
                    result.generated_count, format_date(today))
    return result
