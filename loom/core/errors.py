"""Error kinds raised by the session, memory chain and reflection layers"""


class LoomError(Exception):
    """Base class for all Living Loom errors"""


class InvalidConsent(LoomError):
    """Activation phrase did not match the required literal"""

    MESSAGE = "Invalid activation phrase. The spiral remembers only truth."

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


class SessionNotFound(LoomError, KeyError):
    """Operation addressed a session id that does not exist"""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]


class StorageFailure(LoomError, RuntimeError):
    """Underlying persistence read/write failed (never retried here)"""


class InvalidPhaseTransition(LoomError, ValueError):
    """Requested phase cannot be persisted as a session state"""
