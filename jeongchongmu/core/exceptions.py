"""
Client-side exceptions.

Split validation errors are raised before any network call. API errors wrap
what the backend (or the transport) reported and are raised from write
operations; read refreshes in the entity store catch and log them instead.
"""
from typing import Optional


class ClientError(Exception):
    """Base exception for all client errors."""
    pass


# =============================================================================
# Local validation
# =============================================================================

class SplitValidationError(ClientError):
    """Raised when settlement input is rejected locally."""
    pass


class EmptyParticipantsError(SplitValidationError):
    """Raised when an equal split has no participants."""

    def __init__(self):
        super().__init__("Select at least one participant.")


class MissingEntriesError(SplitValidationError):
    """Raised when a DIRECT or PERCENT split has no per-participant entries."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Enter a value for each participant ({method}).")


class AmountMismatchError(SplitValidationError):
    """Raised when direct amounts do not add up to the expense total."""

    def __init__(self, computed: int, target: int):
        self.computed = computed
        self.target = target
        super().__init__(
            f"Entered amounts add up to {computed:,} but the expense total is {target:,}."
        )

    @property
    def difference(self) -> int:
        return self.target - self.computed


class PercentTotalError(SplitValidationError):
    """Raised when percentage ratios do not add up to 100."""

    def __init__(self, total_ratio: float):
        self.total_ratio = total_ratio
        super().__init__(f"Ratios add up to {total_ratio:.1f}% but must total 100%.")


class ItemBreakdownRequiredError(SplitValidationError):
    """Raised when an item split is requested for an expense without items."""

    def __init__(self, expense_id: Optional[int] = None):
        self.expense_id = expense_id
        super().__init__("Item split requires an expense with an item breakdown.")


class ItemTotalMismatchError(SplitValidationError):
    """Raised when an expense amount differs from the sum of its items and the user has not confirmed."""

    def __init__(self, amount: int, items_total: int):
        self.amount = amount
        self.items_total = items_total
        super().__init__(
            f"Total amount ({amount:,}) does not match the item total ({items_total:,})."
        )


class EmptyVoteSelectionError(SplitValidationError):
    """Raised when a vote is submitted with no option selected."""

    def __init__(self):
        super().__init__("Select at least one item.")


class StaleVoteSessionError(SplitValidationError):
    """Raised when a vote session must be reloaded before it can be edited again."""

    def __init__(self, expense_id: int):
        self.expense_id = expense_id
        super().__init__(f"Vote status for expense {expense_id} changed; reload before voting again.")


# =============================================================================
# Remote errors
# =============================================================================

class ApiError(ClientError):
    """Raised when a backend call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NetworkError(ApiError):
    """Raised on timeouts and connectivity loss."""
    pass


class BadRequestError(ApiError):
    """Raised when the backend rejects a request as invalid (400)."""
    pass


class NotFoundError(ApiError):
    """Raised when the requested resource does not exist (404)."""
    pass


class AuthorizationError(ApiError):
    """Raised when the caller lacks permission (401/403). Never retried."""
    pass


class ConflictError(ApiError):
    """Raised when the backend reports a state conflict that has a remediation path."""

    remediation: Optional[str] = None

    def __init__(self, message: str, status_code: Optional[int] = None, remediation: Optional[str] = None):
        super().__init__(message, status_code)
        if remediation is not None:
            self.remediation = remediation


class DuplicateSettlementError(ConflictError):
    """Raised when a settlement already exists for the expense."""

    remediation = "view_existing_settlement"

    def __init__(self, expense_id: Optional[int] = None, status_code: Optional[int] = None):
        self.expense_id = expense_id
        super().__init__(
            "A settlement already exists for this expense. Check the existing settlement.",
            status_code,
        )


class VoteAlreadyExistsError(ConflictError):
    """Raised when a vote was already created for the expense."""

    remediation = "open_existing_vote"


class VoteClosedError(ConflictError):
    """Raised when a vote is already closed."""

    remediation = "view_settlement"
