from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List, Literal


TransactionType = Literal["income", "expense"]
Frequency = Literal["daily", "weekly", "monthly", "yearly"]

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
TRANSACTION_TYPES = ("income", "expense")


@dataclass(frozen=True)
class TransactionTemplate:
    amount: float
    category: str
    payment_mode: str = "Cash"
    note: str = ""
    t_type: TransactionType = "expense"


@dataclass(frozen=True)
class Transaction:
    id: str
    amount: float
    category: str
    payment_mode: str
    t_date: date
    note: str = ""
    created_at: int = 0  # epoch milliseconds
    t_type: TransactionType = "expense"


@dataclass(frozen=True)
class RecurringRule:
    id: str
    frequency: Frequency
    next_due_date: str  # YYYY-MM-DD
    template: TransactionTemplate
    active: bool = True
    last_run: Optional[str] = None


@dataclass
class MaterializationResult:
    new_transactions: List[Transaction] = field(default_factory=list)
    updated_rules: List[RecurringRule] = field(default_factory=list)

    @property
    def generated_count(self) -> int:
        return len(self.new_transactions)
