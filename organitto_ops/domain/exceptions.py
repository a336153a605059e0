"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input to a workflow operation is malformed or out of range"""

    pass


class MissingRejectionReason(ValidationError):
    """A rejection was requested without a reason"""

    def __init__(self, message: str = "A rejection reason is required"):
        super().__init__(message)


class AuthorizationError(DomainException):
    """Acting user lacks the privilege the operation requires"""

    pass


class InvalidStateTransition(DomainException):
    """Record is not in a state that allows the requested transition"""

    def __init__(self, record_id, current: str, action: str):
        super().__init__(f"Cannot {action} {record_id} (status={current})")
        self.record_id = record_id
        self.current = current
        self.action = action


class AlreadyTerminal(InvalidStateTransition):
    """Product is already at the final pipeline stage"""

    def __init__(self, product_id, stage: str):
        super().__init__(product_id, stage, "advance")


class RecordNotFound(DomainException):
    """Requested record does not exist"""

    def __init__(self, entity: str, record_id):
        super().__init__(f"{entity} {record_id} not found")
        self.entity = entity
        self.record_id = record_id


class BackendUnavailable(DomainException):
    """Record store, identity provider or blob store failed or timed out"""

    pass


class IdentityError(DomainException):
    """Identity provider rejected the credentials or session token"""

    pass


class LaunchNotConfirmed(DomainException):
    """Advance into the terminal stage was requested without explicit confirmation"""

    def __init__(self, product_id):
        super().__init__(f"Launching {product_id} needs explicit confirmation")
        self.product_id = product_id


class DuplicateRecord(DomainException):
    """Write conflicts with a unique value already stored, e.g. a registered email"""

    pass
