from typing import Protocol


class Reporter(Protocol):
    def notify(self, count: int) -> None:
        ...


class ConsoleReporter:
    """Prints a one-line summary after recurring transactions are added."""

    def __init__(self, out=None):
        self._out = out

    def notify(self, count: int) -> None:
        if count <= 0:
            return
        print(f"✓ {count} recurring expenses added", file=self._out)
