"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere:

    NotFoundError          404
    ForbiddenError         403
    InvalidTransitionError 409
    ValidationError        422
    MissingReasonError     422
    InvalidHierarchyError  422

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Organization", resource_id="Acme")
    raise ValidationError("value must be numeric", details={"value": "abc"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND cross-organization access
    attempts, so a caller cannot probe which tenants' rows exist.

    Args:
        resource: Human-readable entity name (e.g. "Organization", "IndicatorValue").
        resource_id: The key that was looked up. Included in logs, not in HTTP response.
        organization_name: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        organization_name: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_name = organization_name
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_name is not None:
            msg += f" (organization={organization_name})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Args:
        message: Actionable explanation (e.g. "value must be numeric").
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidTransitionError(Exception):
    """Raised when a lifecycle guard rejects an action for the current status."""

    def __init__(self, value_id: int | None, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' indicator value {value_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.value_id = value_id
        self.action = action
        self.current_status = current
        self.reason = reason


class MissingReasonError(ValidationError):
    """Raised when a rejection is attempted without a stated reason."""

    def __init__(self, action: str = "reject") -> None:
        super().__init__(
            f"A comment is required to {action} indicator values.",
            details={"comment": "required"},
        )
        self.action = action


class ForbiddenError(Exception):
    """Raised when the acting identity lacks the role for an action.

    The message carries who/what for logs; HTTP handlers answer generically.
    """

    def __init__(self, actor: str, action: str, process_code: str | None = None, scope_name: str | None = None):
        where = ""
        if process_code:
            where += f" on process {process_code}"
        if scope_name:
            where += f" for scope {scope_name}"
        super().__init__(f"User {actor} is not allowed to '{action}'{where}")
        self.actor = actor
        self.action = action
        self.process_code = process_code
        self.scope_name = scope_name


class InvalidHierarchyError(Exception):
    """Raised when a node's declared ancestry does not resolve inside its organization."""

    def __init__(self, node_name: str, reason: str) -> None:
        super().__init__(f"Invalid hierarchy for {node_name}: {reason}")
        self.node_name = node_name
        self.reason = reason
