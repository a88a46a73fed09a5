import math
from dataclasses import replace
from datetime import date
from typing import List, Optional, Tuple

from finance_tracker.dates import DateLike, advance, epoch_millis, format_date, now as current_time
from finance_tracker.errors import RuleNotFoundError
from finance_tracker.logging_config import get_logger
from finance_tracker.models import (
    FREQUENCIES, TRANSACTION_TYPES, Frequency, MaterializationResult, RecurringRule, Transaction,
    TransactionTemplate, TransactionType
)
from finance_tracker.notify import Reporter
from finance_tracker.recurring import materialize, new_id
from finance_tracker.storage import JsonStore

logger = get_logger("logic")


def process_recurring(
        store: JsonStore,
        reporter: Reporter,
        now: Optional[DateLike] = None,
) -> MaterializationResult:
    """Bring the save file up to date with every due recurring occurrence.

    New transactions are written before the advanced rules, so a failure in
    between can repeat occurrences on the next run but never lose one.
    Store failures propagate as StoreError.
    """
    now = now or current_time()
    rules = store.load_rules()
    result = materialize(rules, now)

    if result.generated_count:
        store.append_transactions(result.new_transactions)
        store.save_rules(result.updated_rules)

    reporter.notify(result.generated_count)
    return result


def _validate(amount: float, t_type: str, frequency: Optional[str] = None):
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
        raise ValueError(f"Amount must be a number, got {amount!r}")
    if t_type not in TRANSACTION_TYPES:
        raise ValueError("Type must be 'income' or 'expense'")
    if frequency is not None and frequency not in FREQUENCIES:
        raise ValueError("Invalid interval, use: daily/weekly/monthly/yearly")


def add_transaction(
        store: JsonStore,
        amount: float,
        t_type: TransactionType,
        t_date: date,
        category: str,
        payment_mode: str = "Cash",
        note: str = "",
        repeat: Optional[Frequency] = None,
        now: Optional[DateLike] = None,
) -> Tuple[Transaction, Optional[RecurringRule]]:
    _validate(amount, t_type, repeat)
    now = now or current_time()

    transaction = Transaction(
        id=new_id(),
        amount=float(amount),
        category=category,
        payment_mode=payment_mode,
        t_date=t_date,
        note=note,
        created_at=epoch_millis(now),
        t_type=t_type,
    )
    store.append_transactions([transaction])

    rule = None
    if repeat:
        template = TransactionTemplate(
            amount=transaction.amount,
            category=category,
            payment_mode=payment_mode,
            note=note,
            t_type=t_type,
        )
        # The transaction just saved is the first occurrence.
        rule = create_rule(store, template, repeat, advance(t_date, repeat))
    return transaction, rule


def create_rule(
        store: JsonStore,
        template: TransactionTemplate,
        frequency: Frequency,
        start_date: date,
) -> RecurringRule:
    _validate(template.amount, template.t_type, frequency)
    rule = RecurringRule(
        id=new_id(),
        frequency=frequency,
        next_due_date=format_date(start_date),
        template=template,
        active=True,
    )
    store.save_rules(store.load_rules() + [rule])
    logger.info("Created %s rule %s, first due %s", frequency, rule.id, rule.next_due_date)
    return rule


def list_rules(store: JsonStore) -> List[RecurringRule]:
    return store.load_rules()


def deactivate_rule(store: JsonStore, rule_id: str) -> RecurringRule:
    rules = store.load_rules()
    for i, rule in enumerate(rules):
        if rule.id != rule_id:
            continue
        if not rule.active:
            return rule
        rules[i] = replace(rule, active=False)
        store.save_rules(rules)
        logger.info("Deactivated rule %s", rule_id)
        return rules[i]
    raise RuleNotFoundError(f"Recurring rule not found: {rule_id}")
