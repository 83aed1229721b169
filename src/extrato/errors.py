class ExtratoError(Exception):
    """Base class for everything the import pipeline raises on purpose."""


# Row level: collected into ParseResult.errors, never abort a file.

class RowError(ExtratoError, ValueError):
    pass


class InvalidAmount(RowError):
    pass


class InvalidDate(RowError):
    pass


# File level: the session goes to ERROR.

class FileParseError(ExtratoError):
    pass


class NoTransactionsError(FileParseError):
    def __init__(self, session_id: str, errors: list[str] | None = None):
        self.session_id = session_id
        self.errors = errors or []
        super().__init__("No valid transactions found in file")


# Workflow: rejected with no state change.

class WorkflowError(ExtratoError):
    pass


class SessionNotFoundError(WorkflowError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Import session not found: {session_id}")


class TempTransactionNotFoundError(WorkflowError):
    def __init__(self, temp_id: str):
        self.temp_id = temp_id
        super().__init__(f"Staged transaction not found: {temp_id}")


class AccountNotFoundError(WorkflowError):
    def __init__(self, account: str):
        super().__init__(f"Unknown account: {account}")


class AccountNotWritableError(WorkflowError):
    def __init__(self, account_id: str, user_id: str):
        super().__init__(f"User {user_id} cannot write to account {account_id}")


class InvalidCategoryError(WorkflowError):
    def __init__(self, category_id: str, budget_id: str):
        super().__init__(f"Category {category_id} is not an active category of budget {budget_id}")


class NothingToImportError(WorkflowError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__("Nothing to import: no classified transactions are eligible")


class InvalidSessionStateError(WorkflowError):
    def __init__(self, session_id: str, status, action: str):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Cannot {action} session {session_id} in status {getattr(status, 'value', status)}")
