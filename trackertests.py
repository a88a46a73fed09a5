import io
import itertools
import json
import logging
import os
import tempfile
import unittest
from datetime import date, datetime, timedelta
from pathlib import Path
from unittest.mock import Mock, patch

from dateutil import tz

from finance_tracker import dates, recurring
from finance_tracker.cli import ExpenseTrackerCLI
from finance_tracker.config import Config
from finance_tracker.dates import advance, epoch_millis, is_same_day, is_strictly_before, local_date, parse_date
from finance_tracker.errors import RuleNotFoundError, StoreError
from finance_tracker.logging_config import get_logger, setup_logging
from finance_tracker.logic import add_transaction, create_rule, deactivate_rule, list_rules, process_recurring
from finance_tracker.models import RecurringRule, Transaction, TransactionTemplate
from finance_tracker.notify import ConsoleReporter
from finance_tracker.recurring import materialize
from finance_tracker.storage import JsonStore


FOOD = TransactionTemplate(amount=10, category="Food", payment_mode="Cash", note="", t_type="expense")


def make_rule(next_due, frequency="daily", active=True, template=FOOD, rule_id="rule-1", last_run=None):
    return RecurringRule(
        id=rule_id,
        frequency=frequency,
        next_due_date=next_due,
        template=template,
        active=active,
        last_run=last_run,
    )


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"txn-{next(counter)}"


class TestDates(unittest.TestCase):
    def test_advance_fixed_offsets(self):
        """Test each frequency moves by a fixed number of days"""
        start = date(2024, 1, 31)
        self.assertEqual(advance(start, "daily"), date(2024, 2, 1))
        self.assertEqual(advance(start, "weekly"), date(2024, 2, 7))
        self.assertEqual(advance(start, "monthly"), date(2024, 3, 1))
        self.assertEqual(advance(start, "yearly"), date(2025, 1, 30))

    def test_yearly_ignores_leap_day(self):
        self.assertEqual(advance(date(2024, 1, 1), "yearly"), date(2024, 12, 31))
        self.assertEqual(advance(date(2024, 2, 29), "yearly"), date(2025, 2, 28))

    def test_advance_unknown_frequency(self):
        with self.assertRaises(ValueError):
            advance(date(2024, 1, 1), "fortnightly")
        with self.assertRaises(ValueError):
            advance(date(2024, 1, 1), None)

    def test_parse_date(self):
        self.assertEqual(parse_date("2024-06-01"), date(2024, 6, 1))
        for bad in ("", "not-a-date", "2024-13-01", "01/06/2024", None, 20240601):
            with self.assertRaises(ValueError):
                parse_date(bad)

    def test_comparisons_ignore_time_of_day(self):
        morning = datetime(2024, 6, 3, 0, 5)
        night = datetime(2024, 6, 3, 23, 55)
        self.assertTrue(is_same_day(morning, night))
        self.assertTrue(is_same_day(date(2024, 6, 3), night))
        self.assertFalse(is_strictly_before(date(2024, 6, 3), night))
        self.assertTrue(is_strictly_before(date(2024, 6, 2), morning))
        self.assertFalse(is_strictly_before(date(2024, 6, 4), morning))

    def test_local_date_converts_aware_instants(self):
        """Test aware instants are truncated in the local zone"""
        eastern = tz.tzoffset(None, -5 * 3600)
        instant = datetime(2024, 6, 3, 0, 0, tzinfo=tz.UTC)
        with patch.object(dates.tz, "tzlocal", return_value=eastern):
            self.assertEqual(local_date(instant), date(2024, 6, 2))
        self.assertEqual(local_date(datetime(2024, 6, 3, 23, 59)), date(2024, 6, 3))
        self.assertEqual(local_date(date(2024, 6, 3)), date(2024, 6, 3))
        with self.assertRaises(TypeError):
            local_date("2024-06-03")


class TestMaterialize(unittest.TestCase):
    def test_generates_due_occurrences_and_advances_cursor(self):
        """Test a daily rule catches up through today"""
        rule = make_rule("2024-06-01")
        result = materialize([rule], datetime(2024, 6, 3, 9, 30))

        self.assertEqual(result.generated_count, 3)
        self.assertEqual([t.t_date for t in result.new_transactions],
                         [date(2024, 6, 1), date(2024, 6, 2), date(2024, 6, 3)])
        updated = result.updated_rules[0]
        self.assertEqual(updated.next_due_date, "2024-06-04")
        self.assertEqual(updated.last_run, "2024-06-03")
        self.assertEqual(updated.id, rule.id)

    def test_reference_instant_uses_local_calendar_date(self):
        """Test midnight UTC on June 3rd is still June 2nd west of UTC"""
        rule = make_rule("2024-06-01")
        eastern = tz.tzoffset(None, -5 * 3600)
        with patch.object(dates.tz, "tzlocal", return_value=eastern):
            result = materialize([rule], datetime(2024, 6, 3, tzinfo=tz.UTC))

        self.assertEqual([t.t_date for t in result.new_transactions],
                         [date(2024, 6, 1), date(2024, 6, 2)])
        self.assertEqual(result.updated_rules[0].next_due_date, "2024-06-03")

    def test_backlog_catch_up(self):
        """Test five missed days are all generated in one pass"""
        today = date(2024, 6, 10)
        rule = make_rule((today - timedelta(days=4)).isoformat())
        result = materialize([rule], today)

        self.assertEqual(result.generated_count, 5)
        generated = [t.t_date for t in result.new_transactions]
        self.assertEqual(generated, [today - timedelta(days=n) for n in range(4, -1, -1)])
        self.assertEqual(result.updated_rules[0].next_due_date, (today + timedelta(days=1)).isoformat())

    def test_idempotent_for_same_reference_time(self):
        rules = [
            make_rule("2024-01-01", "daily", rule_id="a"),
            make_rule("2023-12-25", "weekly", rule_id="b"),
            make_rule("2023-06-15", "monthly", rule_id="c"),
            make_rule("2020-02-29", "yearly", rule_id="d"),
            make_rule("2024-09-01", "daily", rule_id="future"),
        ]
        now = datetime(2024, 3, 15, 18, 0)
        first = materialize(rules, now)
        second = materialize(first.updated_rules, now)

        self.assertGreater(first.generated_count, 0)
        self.assertEqual(second.generated_count, 0)
        self.assertEqual(second.new_transactions, [])
        for before, after in zip(first.updated_rules, second.updated_rules):
            self.assertIs(before, after)

    def test_inactive_rules_are_frozen(self):
        rule = make_rule("2020-01-01", active=False, last_run="2019-12-31")
        result = materialize([rule], date(2024, 6, 3))

        self.assertEqual(result.generated_count, 0)
        self.assertIs(result.updated_rules[0], rule)
        self.assertEqual(result.updated_rules[0].next_due_date, "2020-01-01")
        self.assertEqual(result.updated_rules[0].last_run, "2019-12-31")

    def test_template_fidelity(self):
        """Test every instance copies the template and differs only in id/date/created_at"""
        template = TransactionTemplate(amount=1250.5, category="Salary", payment_mode="Bank",
                                       note="Monthly pay", t_type="income")
        rule = make_rule("2024-01-01", "weekly", template=template)
        now = datetime(2024, 2, 1, 12, 0)
        result = materialize([rule], now)

        self.assertEqual(result.generated_count, 5)
        for t in result.new_transactions:
            self.assertEqual(t.amount, 1250.5)
            self.assertEqual(t.category, "Salary")
            self.assertEqual(t.payment_mode, "Bank")
            self.assertEqual(t.note, "Monthly pay")
            self.assertEqual(t.t_type, "income")
            self.assertEqual(t.created_at, epoch_millis(now))
        self.assertEqual(len({t.id for t in result.new_transactions}), 5)

    def test_monthly_rule_drifts_by_thirty_days(self):
        rule = make_rule("2024-01-31", "monthly")
        result = materialize([rule], date(2024, 3, 1))

        self.assertEqual([t.t_date for t in result.new_transactions],
                         [date(2024, 1, 31), date(2024, 3, 1)])
        self.assertNotIn(date(2024, 2, 29), [t.t_date for t in result.new_transactions])
        self.assertEqual(result.updated_rules[0].next_due_date, "2024-03-31")

    def test_yearly_rule_drifts_across_leap_year(self):
        rule = make_rule("2023-03-01", "yearly")
        result = materialize([rule], date(2024, 3, 1))

        self.assertEqual([t.t_date for t in result.new_transactions],
                         [date(2023, 3, 1), date(2024, 2, 29)])
        self.assertEqual(result.updated_rules[0].next_due_date, "2025-02-28")

    def test_rule_not_yet_due_is_returned_unchanged(self):
        rule = make_rule("2024-06-04")
        result = materialize([rule], datetime(2024, 6, 3, 23, 59))

        self.assertEqual(result.generated_count, 0)
        self.assertIs(result.updated_rules[0], rule)

    def test_empty_rule_set(self):
        result = materialize([], datetime(2024, 6, 3))
        self.assertEqual(result.generated_count, 0)
        self.assertEqual(result.updated_rules, [])

    def test_malformed_rules_are_skipped_individually(self):
        """Test a bad date or frequency does not stop the other rules"""
        bad_date = make_rule("06/01/2024", rule_id="bad-date")
        bad_freq = make_rule("2024-06-01", "fortnightly", rule_id="bad-freq")
        missing_date = make_rule(None, rule_id="no-date")
        good = make_rule("2024-06-02", rule_id="good")

        with self.assertLogs("finance_tracker.recurring", level="WARNING") as logs:
            result = materialize([bad_date, bad_freq, missing_date, good], date(2024, 6, 3))

        self.assertEqual(result.generated_count, 2)
        self.assertIs(result.updated_rules[0], bad_date)
        self.assertIs(result.updated_rules[1], bad_freq)
        self.assertIs(result.updated_rules[2], missing_date)
        self.assertEqual(result.updated_rules[3].next_due_date, "2024-06-04")
        self.assertEqual(len(logs.records), 3)
        self.assertIn("bad-date", logs.output[0])

    def test_unknown_frequency_skipped_even_when_not_due(self):
        rule = make_rule("2030-01-01", "hourly")
        with self.assertLogs("finance_tracker.recurring", level="WARNING"):
            result = materialize([rule], date(2024, 6, 3))
        self.assertIs(result.updated_rules[0], rule)

    def test_engine_logs_through_package_logger(self):
        self.assertIs(recurring.logger, get_logger("recurring"))

    def test_output_order_follows_rules_then_dates(self):
        rent = make_rule("2024-06-02", "daily", rule_id="rent",
                         template=TransactionTemplate(amount=5, category="Bills"))
        bus = make_rule("2024-06-03", "daily", rule_id="bus",
                        template=TransactionTemplate(amount=2, category="Transport"))
        result = materialize([rent, bus], date(2024, 6, 3), id_factory=sequential_ids())

        self.assertEqual(
            [(t.id, t.category, t.t_date) for t in result.new_transactions],
            [
                ("txn-1", "Bills", date(2024, 6, 2)),
                ("txn-2", "Bills", date(2024, 6, 3)),
                ("txn-3", "Transport", date(2024, 6, 3)),
            ],
        )
        self.assertEqual([r.id for r in result.updated_rules], ["rent", "bus"])

    def test_inputs_are_not_modified(self):
        rules = [make_rule("2024-06-01")]
        materialize(rules, date(2024, 6, 3))
        self.assertEqual(rules[0].next_due_date, "2024-06-01")
        self.assertIsNone(rules[0].last_run)

    def test_missing_template_type_defaults_to_expense(self):
        template = TransactionTemplate(amount=3, category="Other", t_type=None)
        result = materialize([make_rule("2024-06-03", template=template)], date(2024, 6, 3))
        self.assertEqual(result.new_transactions[0].t_type, "expense")


class StoreTestCase(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.data_dir = Path(tmp.name)
        self.store = JsonStore(self.data_dir / "test_save.json")

    def make_transaction(self, t_id, t_date, amount=1.0):
        return Transaction(id=t_id, amount=amount, category="Food", payment_mode="Cash",
                           t_date=t_date, note="", created_at=1717200000000, t_type="expense")


class TestJsonStore(StoreTestCase):
    def test_missing_file_is_empty(self):
        self.assertEqual(self.store.load_rules(), [])
        self.assertEqual(self.store.load_transactions(), [])

    def test_rules_round_trip(self):
        rules = [make_rule("2024-06-01", rule_id="a", last_run="2024-05-31"),
                 make_rule("2024-07-01", "monthly", active=False, rule_id="b")]
        self.store.save_rules(rules)

        self.assertEqual(self.store.load_rules(), rules)
        data = json.loads(self.store.path.read_text())
        self.assertEqual(data["metadata"]["version"], "2.0")
        self.assertEqual(data["recurring_rules"][0]["next_due_date"], "2024-06-01")

    def test_save_rules_replaces_whole_collection(self):
        self.store.save_rules([make_rule("2024-06-01", rule_id="a"), make_rule("2024-06-01", rule_id="b")])
        self.store.save_rules([make_rule("2024-06-01", rule_id="c")])
        self.assertEqual([r.id for r in self.store.load_rules()], ["c"])

    def test_append_transactions_prepends_in_order(self):
        self.store.append_transactions([self.make_transaction("old", date(2024, 5, 1))])
        self.store.append_transactions([
            self.make_transaction("new-1", date(2024, 6, 1)),
            self.make_transaction("new-2", date(2024, 6, 2)),
        ])

        loaded = self.store.load_transactions()
        self.assertEqual([t.id for t in loaded], ["new-1", "new-2", "old"])
        self.assertEqual(loaded[0], self.make_transaction("new-1", date(2024, 6, 1)))

    def test_append_nothing_does_not_write(self):
        self.store.append_transactions([])
        self.assertFalse(self.store.path.exists())

    def test_rules_and_transactions_share_the_file(self):
        self.store.save_rules([make_rule("2024-06-01")])
        self.store.append_transactions([self.make_transaction("t1", date(2024, 6, 1))])
        self.assertEqual(len(self.store.load_rules()), 1)
        self.assertEqual(len(self.store.load_transactions()), 1)

    def test_unreadable_rule_values_survive_a_save(self):
        """Test a rule with a bad date is loaded as-is and written back unchanged"""
        self.store.save_rules([make_rule("31/01/2024", "fortnightly")])
        rules = self.store.load_rules()
        self.store.save_rules(rules)

        reloaded = self.store.load_rules()[0]
        self.assertEqual(reloaded.next_due_date, "31/01/2024")
        self.assertEqual(reloaded.frequency, "fortnightly")

    def test_undecodable_rule_records_survive_processing(self):
        """Test a rule record that cannot be loaded is written back untouched when rules are saved"""
        weird = {"id": "weird", "frequency": "daily", "next_due_date": "2024-06-01", "active": True,
                 "template": "broken"}
        self.store.path.write_text(json.dumps({
            "recurring_rules": [
                weird,
                {"id": "good", "frequency": "daily", "next_due_date": "2024-06-01", "active": True,
                 "template": {"amount": 4, "category": "Food"}},
            ]
        }))
        with self.assertLogs("finance_tracker.storage", level="WARNING"):
            result = process_recurring(self.store, Mock(), now=datetime(2024, 6, 2))

        self.assertEqual(result.generated_count, 2)
        raw_rules = json.loads(self.store.path.read_text())["recurring_rules"]
        self.assertEqual([r["id"] for r in raw_rules], ["good", "weird"])
        self.assertEqual(raw_rules[0]["next_due_date"], "2024-06-03")
        self.assertEqual(raw_rules[1], weird)

        create_rule(self.store, FOOD, "weekly", date(2024, 6, 10))
        raw_rules = json.loads(self.store.path.read_text())["recurring_rules"]
        self.assertIn(weird, raw_rules)
        self.assertEqual(len(raw_rules), 3)

    def test_non_boolean_active_is_not_treated_as_active(self):
        """Test a stored "false" string neither reactivates the rule nor gets dropped"""
        paused = {"id": "paused", "frequency": "daily", "next_due_date": "2024-06-01", "active": "false",
                  "template": {"amount": 4, "category": "Food"}}
        self.store.path.write_text(json.dumps({"recurring_rules": [paused]}))

        with self.assertLogs("finance_tracker.storage", level="WARNING"):
            self.assertEqual(self.store.load_rules(), [])
        with self.assertLogs("finance_tracker.storage", level="WARNING"):
            result = process_recurring(self.store, Mock(), now=datetime(2024, 6, 2))
        self.assertEqual(result.generated_count, 0)
        self.assertEqual(self.store.load_transactions(), [])

        self.store.save_rules([make_rule("2024-06-05", rule_id="other")])
        raw_rules = json.loads(self.store.path.read_text())["recurring_rules"]
        self.assertEqual(raw_rules[1], paused)

    def test_invalid_transactions_skipped_but_kept_on_disk(self):
        self.store.path.write_text(json.dumps({
            "transactions": [
                {"id": "broken", "amount": 1, "category": "Food", "t_date": "yesterday"},
                {"id": "ok", "amount": 2, "category": "Food", "t_date": "2024-06-01"},
            ]
        }))
        with self.assertLogs("finance_tracker.storage", level="WARNING"):
            loaded = self.store.load_transactions()
        self.assertEqual([t.id for t in loaded], ["ok"])
        self.assertEqual(loaded[0].t_type, "expense")

        self.store.append_transactions([self.make_transaction("new", date(2024, 6, 2))])
        raw_ids = [t["id"] for t in json.loads(self.store.path.read_text())["transactions"]]
        self.assertEqual(raw_ids, ["new", "broken", "ok"])

    def test_rule_records_without_id_are_skipped(self):
        self.store.path.write_text(json.dumps({
            "recurring_rules": [
                {"frequency": "daily", "next_due_date": "2024-06-01"},
                {"id": "kept", "frequency": "daily", "next_due_date": "2024-06-01", "active": True,
                 "template": {"amount": 4, "category": "Food"}},
            ]
        }))
        with self.assertLogs("finance_tracker.storage", level="WARNING"):
            rules = self.store.load_rules()
        self.assertEqual([r.id for r in rules], ["kept"])
        self.assertEqual(rules[0].template.payment_mode, "Cash")

    def test_corrupt_file_raises_store_error(self):
        self.store.path.write_text("{not json")
        with self.assertRaises(StoreError):
            self.store.load_rules()
        with self.assertRaises(StoreError):
            self.store.append_transactions([self.make_transaction("t1", date(2024, 6, 1))])

    def test_write_failure_raises_store_error(self):
        with patch("finance_tracker.storage.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(StoreError):
                self.store.save_rules([make_rule("2024-06-01")])
        self.assertFalse(self.store.path.exists())
        self.assertEqual(list(self.data_dir.glob("*.tmp")), [])


class TestProcessRecurring(StoreTestCase):
    def test_writes_transactions_rules_and_reports(self):
        self.store.append_transactions([self.make_transaction("existing", date(2024, 5, 30))])
        self.store.save_rules([make_rule("2024-06-01")])
        reporter = Mock()

        result = process_recurring(self.store, reporter, now=datetime(2024, 6, 2, 8, 0))

        self.assertEqual(result.generated_count, 2)
        reporter.notify.assert_called_once_with(2)
        stored = self.store.load_transactions()
        self.assertEqual([t.t_date for t in stored],
                         [date(2024, 6, 1), date(2024, 6, 2), date(2024, 5, 30)])
        rule = self.store.load_rules()[0]
        self.assertEqual(rule.next_due_date, "2024-06-03")
        self.assertEqual(rule.last_run, "2024-06-02")

    def test_second_run_adds_nothing(self):
        self.store.save_rules([make_rule("2024-06-01")])
        now = datetime(2024, 6, 2, 8, 0)
        process_recurring(self.store, Mock(), now=now)
        saved = self.store.path.read_text()

        reporter = Mock()
        with patch.object(self.store, "append_transactions") as append, \
                patch.object(self.store, "save_rules") as save:
            result = process_recurring(self.store, reporter, now=now)

        self.assertEqual(result.generated_count, 0)
        append.assert_not_called()
        save.assert_not_called()
        reporter.notify.assert_called_once_with(0)
        self.assertEqual(self.store.path.read_text(), saved)

    def test_store_failure_propagates(self):
        self.store.path.write_text("[]")
        reporter = Mock()
        with self.assertRaises(StoreError):
            process_recurring(self.store, reporter, now=datetime(2024, 6, 2))
        reporter.notify.assert_not_called()

    def test_console_reporter(self):
        out = io.StringIO()
        reporter = ConsoleReporter(out=out)
        reporter.notify(0)
        self.assertEqual(out.getvalue(), "")
        reporter.notify(3)
        self.assertIn("3 recurring expenses added", out.getvalue())


class TestRuleManagement(StoreTestCase):
    def test_add_transaction_without_repeat(self):
        transaction, rule = add_transaction(self.store, 42, "expense", date(2024, 6, 1), "Shopping",
                                            payment_mode="Card", note="Shoes",
                                            now=datetime(2024, 6, 1, 10, 0))
        self.assertIsNone(rule)
        self.assertEqual(self.store.load_transactions(), [transaction])
        self.assertEqual(transaction.amount, 42.0)
        self.assertEqual(transaction.created_at, epoch_millis(datetime(2024, 6, 1, 10, 0)))
        self.assertEqual(list_rules(self.store), [])

    def test_add_transaction_with_repeat_creates_rule(self):
        transaction, rule = add_transaction(self.store, 500, "income", date(2024, 1, 31), "Salary",
                                            payment_mode="Bank", repeat="monthly",
                                            now=datetime(2024, 1, 31, 9, 0))
        self.assertEqual(rule.frequency, "monthly")
        self.assertEqual(rule.next_due_date, "2024-03-01")
        self.assertTrue(rule.active)
        self.assertEqual(rule.template, TransactionTemplate(amount=500.0, category="Salary",
                                                            payment_mode="Bank", note="", t_type="income"))
        self.assertEqual(list_rules(self.store), [rule])

    def test_repeating_transaction_is_not_duplicated_on_startup(self):
        add_transaction(self.store, 9.99, "expense", date(2024, 6, 1), "Entertainment",
                        repeat="daily", now=datetime(2024, 6, 1, 9, 0))
        result = process_recurring(self.store, Mock(), now=datetime(2024, 6, 1, 20, 0))

        self.assertEqual(result.generated_count, 0)
        self.assertEqual(len(self.store.load_transactions()), 1)

    def test_add_transaction_rejects_bad_input(self):
        with self.assertRaises(ValueError):
            add_transaction(self.store, 5, "transfer", date(2024, 6, 1), "Other")
        with self.assertRaises(ValueError):
            add_transaction(self.store, float("nan"), "expense", date(2024, 6, 1), "Other")
        with self.assertRaises(ValueError):
            add_transaction(self.store, 5, "expense", date(2024, 6, 1), "Other", repeat="hourly")
        self.assertEqual(self.store.load_transactions(), [])

    def test_create_rule_appends(self):
        first = create_rule(self.store, FOOD, "weekly", date(2024, 6, 1))
        second = create_rule(self.store, FOOD, "daily", date(2024, 6, 5))
        self.assertEqual([r.id for r in list_rules(self.store)], [first.id, second.id])
        self.assertEqual(second.next_due_date, "2024-06-05")

    def test_deactivate_rule(self):
        rule = create_rule(self.store, FOOD, "daily", date(2024, 6, 1))
        stopped = deactivate_rule(self.store, rule.id)

        self.assertFalse(stopped.active)
        self.assertEqual(stopped.next_due_date, rule.next_due_date)
        self.assertFalse(list_rules(self.store)[0].active)

        result = process_recurring(self.store, Mock(), now=datetime(2024, 7, 1))
        self.assertEqual(result.generated_count, 0)
        self.assertEqual(deactivate_rule(self.store, rule.id), stopped)

    def test_deactivate_unknown_rule(self):
        with self.assertRaises(RuleNotFoundError):
            deactivate_rule(self.store, "missing")


class TestCLI(StoreTestCase):
    def setUp(self):
        super().setUp()
        self.out = io.StringIO()
        self.cli = ExpenseTrackerCLI(self.store, stdout=self.out)

    def test_add_recurring_transaction(self):
        self.cli.onecmd("add 12.5 expense Food 2024-06-01 --mode UPI --recur weekly --note Lunch with team")

        transactions = self.store.load_transactions()
        self.assertEqual(len(transactions), 1)
        self.assertEqual(transactions[0].payment_mode, "UPI")
        self.assertEqual(transactions[0].note, "Lunch with team")
        rule = self.store.load_rules()[0]
        self.assertEqual(rule.next_due_date, "2024-06-08")
        self.assertIn("recurring weekly", self.out.getvalue())

    def test_add_rejects_bad_interval(self):
        self.cli.onecmd("add 5 expense --recur hourly")
        self.assertIn("Invalid input", self.out.getvalue())
        self.assertEqual(self.store.load_transactions(), [])

    def test_parse_add_defaults(self):
        args = ExpenseTrackerCLI._parse_add_args("100 income")
        self.assertEqual(args['category'], "Salary")
        self.assertEqual(args['date'], date.today())
        self.assertEqual(args['mode'], "Cash")
        self.assertIsNone(args['recur_interval'])

    def test_startup_materializes_due_rules(self):
        yesterday = date.today() - timedelta(days=1)
        self.store.save_rules([make_rule(yesterday.isoformat())])

        self.cli.preloop()

        self.assertIn("2 recurring expenses added", self.out.getvalue())
        self.assertEqual(len(self.store.load_transactions()), 2)

    def test_banner_comes_before_startup_summary(self):
        yesterday = date.today() - timedelta(days=1)
        self.store.save_rules([make_rule(yesterday.isoformat())])
        cli = ExpenseTrackerCLI(self.store, stdin=io.StringIO("exit\n"), stdout=self.out)
        cli.use_rawinput = False

        cli.cmdloop()

        output = self.out.getvalue()
        self.assertEqual(output.count("Welcome to Expense Tracker"), 1)
        self.assertLess(output.index("Welcome to Expense Tracker"), output.index("2 recurring expenses added"))

    def test_refresh_with_nothing_due_is_quiet(self):
        self.cli.onecmd("refresh")
        self.assertNotIn("recurring expenses added", self.out.getvalue())
        self.assertIn("up to date", self.out.getvalue())

    def test_refresh_reports_store_errors(self):
        self.store.path.write_text("{broken")
        self.cli.onecmd("refresh")
        self.assertIn("Error processing recurring transactions", self.out.getvalue())

    def test_rules_and_stop(self):
        rule = create_rule(self.store, FOOD, "daily", date.today() + timedelta(days=3))
        self.cli.onecmd("rules")
        self.assertIn(rule.id, self.out.getvalue())

        self.cli.onecmd(f"stop {rule.id}")
        self.assertIn("Stopped recurring rule", self.out.getvalue())
        self.assertFalse(self.store.load_rules()[0].active)

        self.cli.onecmd("stop nope")
        self.assertIn("Recurring rule not found", self.out.getvalue())

    def test_list_transactions(self):
        self.store.append_transactions([self.make_transaction("t1", date(2024, 6, 1), amount=3)])
        self.cli.onecmd("list")
        self.assertIn("2024-06-01  -3.00  Food (Cash)", self.out.getvalue())


class TestConfig(unittest.TestCase):
    def test_environment_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            env = {"TRACKER_DATA_DIR": tmp, "TRACKER_SAVE_NAME": "household",
                   "TRACKER_LOG_LEVEL": "debug", "TRACKER_LOG_TO_FILE": "yes"}
            with patch.dict(os.environ, env):
                config = Config()
            self.assertEqual(config.save_path, Path(tmp) / "household.json")
            self.assertEqual(config.LOG_LEVEL, "DEBUG")
            self.assertTrue(config.LOG_TO_FILE)

            logger = setup_logging(config)
            try:
                logger.info("hello")
                for handler in logger.handlers:
                    handler.flush()
                self.assertTrue((Path(tmp) / "logs" / "tracker.log").exists())
            finally:
                for handler in list(logger.handlers):
                    handler.close()
                    logger.removeHandler(handler)
                logger.propagate = True

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config()
        self.assertEqual(config.save_path, Path("saves") / "default.json")
        self.assertEqual(config.LOG_LEVEL, "INFO")

    def test_unknown_log_level_falls_back_to_info(self):
        with patch.dict(os.environ, {"TRACKER_LOG_LEVEL": "loud", "TRACKER_LOG_TO_FILE": "no"}):
            config = Config()
        self.assertEqual(config.LOG_LEVEL, "INFO")
        self.assertEqual(config.REJECTED_LOG_LEVEL, "LOUD")

        with patch("sys.stderr", new_callable=io.StringIO) as stderr:
            logger = setup_logging(config)
        try:
            self.assertEqual(logger.level, logging.INFO)
            self.assertIn("Unknown TRACKER_LOG_LEVEL 'LOUD', using INFO", stderr.getvalue())
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            logger.propagate = True


if __name__ == "__main__":
    unittest.main()
