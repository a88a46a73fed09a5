import json
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Iterable, List

from .dates import parse_date
from .errors import StoreError
from .logging_config import get_logger
from .models import RecurringRule, Transaction, TransactionTemplate

logger = get_logger("storage")

FORMAT_VERSION = "2.0"


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


def encode_transaction(t: Transaction) -> dict:
    return {
        "id": t.id,
        "amount": t.amount,
        "category": t.category,
        "payment_mode": t.payment_mode,
        "t_date": t.t_date,
        "note": t.note,
        "created_at": t.created_at,
        "t_type": t.t_type,
    }


def decode_transaction(t_data: dict) -> Transaction:
    return Transaction(
        id=t_data["id"],
        amount=t_data["amount"],
        category=t_data["category"],
        payment_mode=t_data.get("payment_mode", "Cash"),
        t_date=parse_date(t_data["t_date"]),
        note=t_data.get("note", ""),
        created_at=int(t_data.get("created_at", 0)),
        t_type=t_data.get("t_type") or "expense",
    )


def encode_rule(rule: RecurringRule) -> dict:
    template = rule.template
    return {
        "id": rule.id,
        "frequency": rule.frequency,
        "next_due_date": rule.next_due_date,
        "active": rule.active,
        "last_run": rule.last_run,
        "template": {
            "amount": template.amount,
            "category": template.category,
            "payment_mode": template.payment_mode,
            "note": template.note,
            "t_type": template.t_type,
        },
    }


def decode_rule(r_data: dict) -> RecurringRule:
    # Dates and frequency are kept as stored; the engine skips rules it cannot schedule.
    template = r_data.get("template") or {}
    active = r_data.get("active", False)
    if not isinstance(active, bool):
        raise TypeError(f"active must be true or false, got {active!r}")
    return RecurringRule(
        id=r_data["id"],
        frequency=r_data.get("frequency"),
        next_due_date=r_data.get("next_due_date"),
        template=TransactionTemplate(
            amount=template.get("amount"),
            category=template.get("category"),
            payment_mode=template.get("payment_mode", "Cash"),
            note=template.get("note", ""),
            t_type=template.get("t_type") or "expense",
        ),
        active=active,
        last_run=r_data.get("last_run"),
    )


def _is_readable_rule(r_data) -> bool:
    try:
        decode_rule(r_data)
    except (KeyError, TypeError, AttributeError):
        return False
    return True


class JsonStore:
    """Rule store and transaction sink backed by a single JSON save file.

    Every write replaces a whole section (``transactions`` or
    ``recurring_rules``) and the file itself is swapped in atomically. There
    is no locking: one writer at a time is assumed.
    """

    def __init__(self, path):
        self.path = Path(path)

    # ===== RULE STORE =====
    def load_rules(self) -> List[RecurringRule]:
        rules = []
        for r_data in self._read().get("recurring_rules", []):
            try:
                rules.append(decode_rule(r_data))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping unreadable recurring rule %r: %s", r_data, e)
        return rules

    def save_rules(self, rules: Iterable[RecurringRule]) -> None:
        """Replace the stored rules with ``rules``.

        Records that ``load_rules`` could not read are never handed to callers,
        so they are carried over as-is after the given rules.
        """
        data = self._read()
        unreadable = [r_data for r_data in data.get("recurring_rules", []) if not _is_readable_rule(r_data)]
        data["recurring_rules"] = [encode_rule(rule) for rule in rules] + unreadable
        self._write(data)

    # ===== TRANSACTION SINK =====
    def load_transactions(self) -> List[Transaction]:
        transactions = []
        for t_data in self._read().get("transactions", []):
            try:
                transactions.append(decode_transaction(t_data))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                t_id = t_data.get("id") if isinstance(t_data, dict) else None
                logger.warning("Skipping invalid transaction %s: %s", t_id, e)
        return transactions

    def append_transactions(self, transactions: Iterable[Transaction]) -> None:
        """Put ``transactions`` ahead of the stored ones, keeping their order."""
        new_records = [encode_transaction(t) for t in transactions]
        if not new_records:
            return
        data = self._read()
        # Existing records stay raw so ones this version cannot read are not lost.
        data["transactions"] = new_records + list(data.get("transactions", []))
        self._write(data)
        logger.info("Saved %d new transaction(s) to '%s'", len(new_records), self.path.stem)

    # ===== FILE I/O =====
    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StoreError(f"Cannot read save file '{self.path}': {e}") from e
        except ValueError as e:
            raise StoreError(f"Save file '{self.path}' is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Save file '{self.path}' has an unexpected layout")
        return data

    def _write(self, data: dict) -> None:
        data["metadata"] = {
            "version": FORMAT_VERSION,
            "updated": date.today().isoformat(),
        }
        json_str = json.dumps(data, cls=EnhancedJSONEncoder, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.stem}-", suffix=".tmp")
        except OSError as e:
            raise StoreError(f"Cannot write save file '{self.path}': {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(json_str)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreError(f"Cannot write save file '{self.path}': {e}") from e
