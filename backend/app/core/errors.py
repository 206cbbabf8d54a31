"""
Error taxonomy for the classification engine.

Configuration errors indicate a caller bug (unknown id, overlapping situation,
unsupported jurisdiction) and are raised immediately. Decision gaps such as
"no matching rule" or "no situation covers this date" are never errors; they
are returned as data.
"""


class ConfigurationError(ValueError):
    """Malformed or missing configuration referenced by the caller."""


class SituationNotFoundError(ConfigurationError):
    def __init__(self, situation_id: int):
        self.situation_id = situation_id
        super().__init__(f"Situation with id {situation_id} not found")


class SituationOverlapError(ConfigurationError):
    def __init__(self, message: str, situation_ids: tuple[int, ...] = ()):
        self.situation_ids = situation_ids
        super().__init__(message)


class IncomeSourceNotFoundError(ConfigurationError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Income source with id '{source_id}' not found")


class DuplicateIncomeSourceError(ConfigurationError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Income source with id '{source_id}' already exists")


class InvalidAllocationRuleError(ConfigurationError):
    def __init__(self, rule_id: str | None, message: str):
        self.rule_id = rule_id
        super().__init__(f"Allocation rule {rule_id or '<new>'}: {message}")


class UnsupportedJurisdictionError(ConfigurationError):
    def __init__(self, jurisdiction: str, supported: list[str]):
        self.jurisdiction = jurisdiction
        super().__init__(
            f"Unsupported jurisdiction: {jurisdiction}. Supported: {', '.join(supported)}"
        )


class ExpenseNotFoundError(LookupError):
    def __init__(self, expense_id: str, account: str):
        self.expense_id = expense_id
        self.account = account
        super().__init__(f"Expense {expense_id} not found for account {account}")
