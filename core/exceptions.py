"""Error taxonomy shared by services and routers."""
from typing import Dict, Optional


class DatingError(Exception):
    """Base class for errors raised by the matchmaking services."""


class IdentityUnavailableError(DatingError):
    """The acting user's identifier could not be resolved."""


class RecordStoreError(DatingError):
    """A query or write against the record store failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class StaleReferenceError(DatingError):
    """A referenced record (profile, session, message) no longer exists."""

    def __init__(self, record_type: str, record_id: int):
        super().__init__(f"{record_type} {record_id} no longer exists")
        self.record_type = record_type
        self.record_id = record_id


class PartialBatchError(DatingError):
    """Some records of a multi-record operation failed for non-benign reasons."""

    def __init__(self, failures: Dict[int, str]):
        super().__init__(f"{len(failures)} record(s) failed: {sorted(failures)}")
        self.failures = failures


class DuplicateDecisionError(DatingError):
    """The user already recorded a decision for this session."""

    def __init__(self, session_id: int, user_id: int):
        super().__init__(f"User {user_id} already decided on session {session_id}")
        self.session_id = session_id
        self.user_id = user_id


class InvalidTransitionError(DatingError):
    """A live-event event is not allowed in the current phase."""


class NotParticipantError(DatingError):
    """The acting user is not one of the two people in the session."""

    def __init__(self, session_id: int, user_id: int):
        super().__init__(f"User {user_id} is not part of session {session_id}")
        self.session_id = session_id
        self.user_id = user_id
