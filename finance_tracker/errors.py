class TrackerError(Exception):
    pass


class MalformedRuleError(TrackerError):
    """A stored rule cannot be scheduled (bad date or unknown frequency)."""

    def __init__(self, rule_id, reason: str):
        super().__init__(f"Rule {rule_id}: {reason}")
        self.rule_id = rule_id
        self.reason = reason


class RuleNotFoundError(TrackerError):
    pass


class StoreError(TrackerError):
    """The save file could not be read or written."""
