import cmd
from datetime import date

from finance_tracker.dates import parse_date
from finance_tracker.errors import TrackerError
from finance_tracker.logic import add_transaction, deactivate_rule, list_rules, process_recurring
from finance_tracker.models import FREQUENCIES, TRANSACTION_TYPES
from finance_tracker.notify import ConsoleReporter


class ExpenseTrackerCLI(cmd.Cmd):
    prompt = "(tracker) "

    banner = "Welcome to Expense Tracker. Type 'help' for commands."

    def __init__(self, store, reporter=None, stdin=None, stdout=None):
        super().__init__(stdin=stdin, stdout=stdout)
        self.store = store
        self.reporter = reporter or ConsoleReporter(out=stdout)

    def preloop(self):
        # cmdloop only prints intro after preloop has run.
        self._print(self.banner)
        # Startup is the one place recurring rules are caught up automatically.
        self._run_recurring()

    def emptyline(self):
        pass

    def _print(self, text=""):
        print(text, file=self.stdout)

    # ===== CORE COMMANDS =====
    def do_add(self, arg):
        """Add a transaction: add <amount> <income|expense> [category] [YYYY-MM-DD] [--mode <Cash|UPI|Card|Bank|Other>] [--recur <daily|weekly|monthly|yearly>] [--note "note"]"""
        try:
            args = self._parse_add_args(arg)
            transaction, rule = add_transaction(
                self.store,
                amount=args['amount'],
                t_type=args['type'],
                t_date=args['date'],
                category=args['category'],
                payment_mode=args['mode'],
                note=args['note'],
                repeat=args['recur_interval'],
            )
            confirmation = f"✓ Added {transaction.t_type} of {transaction.amount:.2f} on {transaction.t_date}"
            if rule is not None:
                confirmation += f" (recurring {rule.frequency}, next on {rule.next_due_date})"
            self._print(confirmation)
        except ValueError as e:
            self._print(f"Invalid input: {e}")
        except TrackerError as e:
            self._print(f"Error adding transaction: {e}")

    def do_list(self, arg):
        """Show the most recent transactions: list [count=10]"""
        try:
            count = int(arg) if arg.strip() else 10
            transactions = self.store.load_transactions()
        except ValueError:
            self._print("Count must be a whole number")
            return
        except TrackerError as e:
            self._print(f"Error: {e}")
            return

        if not transactions:
            self._print("No transactions recorded")
            return
        for t in transactions[:count]:
            sign = "+" if t.t_type == "income" else "-"
            line = f"  {t.t_date}  {sign}{t.amount:.2f}  {t.category} ({t.payment_mode})"
            if t.note:
                line += f"  {t.note}"
            self._print(line)

    # ===== RECURRING RULES =====
    def do_rules(self, arg):
        """List recurring rules"""
        try:
            rules = list_rules(self.store)
        except TrackerError as e:
            self._print(f"Error: {e}")
            return

        if not rules:
            self._print("No recurring rules defined")
            return
        self._print("\nRecurring rules:")
        for rule in rules:
            status = "active" if rule.active else "stopped"
            last = f", last run {rule.last_run}" if rule.last_run else ""
            self._print(
                f"  {rule.id}  {rule.frequency} {rule.template.t_type} of {rule.template.amount} "
                f"[{rule.template.category}] next {rule.next_due_date} ({status}{last})"
            )

    def do_stop(self, arg):
        """Stop a recurring rule from producing transactions: stop <rule id>"""
        rule_id = arg.strip()
        if not rule_id:
            self._print("Usage: stop <rule id>")
            return
        try:
            deactivate_rule(self.store, rule_id)
            self._print(f"✓ Stopped recurring rule {rule_id}")
        except TrackerError as e:
            self._print(f"Error: {e}")

    def do_refresh(self, arg):
        """Add any recurring transactions that have come due"""
        if not self._run_recurring():
            return
        self._print("✓ Recurring transactions are up to date")

    def _run_recurring(self) -> bool:
        try:
            process_recurring(self.store, self.reporter)
        except TrackerError as e:
            self._print(f"Error processing recurring transactions: {e}")
            return False
        return True

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        self._print("Goodbye!")
        return True

    # ===== HELPERS =====
    @staticmethod
    def _parse_add_args(arg):
        """Parse add command arguments with proper date handling"""
        args = arg.split()
        if len(args) < 2:
            raise ValueError("Missing required arguments (amount and type)")

        result = {
            'amount': float(args[0]),
            'type': args[1].lower(),
            'category': None,
            'date': date.today(),
            'mode': "Cash",
            'recur_interval': None,
            'note': ""
        }

        if result['type'] not in TRANSACTION_TYPES:
            raise ValueError("Type must be 'income' or 'expense'")

        i = 2
        while i < len(args):
            if args[i] in ('--recur', '--mode'):
                if i+1 >= len(args):
                    raise ValueError(f"Missing value after {args[i]}")
                if args[i] == '--recur':
                    if args[i+1] not in FREQUENCIES:
                        raise ValueError("Invalid interval, use: daily/weekly/monthly/yearly")
                    result['recur_interval'] = args[i+1]
                else:
                    result['mode'] = args[i+1]
                i += 2
            elif args[i] == '--note':
                result['note'] = ' '.join(args[i+1:]).strip('"')
                break
            elif args[i].startswith('--'):
                raise ValueError(f"Unknown flag: {args[i]}")
            else:
                # Try to parse as date first (YYYY-MM-DD)
                try:
                    result['date'] = parse_date(args[i])
                    i += 1
                    continue
                except ValueError:
                    pass

                if result['category'] is None:
                    result['category'] = args[i]
                    i += 1
                else:
                    raise ValueError(f"Unexpected argument: {args[i]}")

        if result['category'] is None:
            result['category'] = "Salary" if result['type'] == "income" else "Food"
        return result
