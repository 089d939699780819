"""
HeartSync Errors
Failure taxonomy shared by the decoder, sessions, orchestrator and transports

None of these are fatal at runtime: public entry points catch them,
log a diagnostic and carry on with the live installation.
"""


class HeartSyncError(Exception):
    """Base class for all HeartSync failures"""


class MalformedPayload(HeartSyncError):
    """Notification bytes could not be decoded (too short or malformed)"""


class NotConnected(HeartSyncError):
    """Operation attempted on a session or channel that is not connected"""


class TransportUnavailable(HeartSyncError):
    """Outbound send attempted while the transport handle is not ready"""


class InvalidTransition(HeartSyncError):
    """State-machine operation called from an incompatible state"""

    def __init__(self, operation: str, state):
        self.operation = operation
        self.state = state
        super().__init__(f"'{operation}' ignored in state {state}")
