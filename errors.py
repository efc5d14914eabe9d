class SignalingError(Exception):
    """Base class for failures reported back to the caller as a message."""

    message = "Signaling error"

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class AlreadyExists(SignalingError):
    message = "Room already exists"


class NotFound(SignalingError):
    message = "Room not found"


class RoomFull(SignalingError):
    message = "Room is full"


class InvalidDirection(SignalingError):
    message = "Invalid offer direction"


class InvalidAction(SignalingError):
    def __init__(self, action):
        super().__init__(f"Invalid action: {action}")
        self.action = action


class MissingField(SignalingError):
    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}")
        self.field = field


class InvalidIdentifier(SignalingError):
    def __init__(self, field: str, value):
        super().__init__(f"Invalid {field}: {value!r}")
        self.field = field
        self.value = value


class InvalidPayload(SignalingError):
    message = "Invalid payload"
