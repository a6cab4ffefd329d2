class RelayError(Exception):
    """Failure of the relay itself, reported to the client as a JSON body."""

    status = 500
    message = "Proxy error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {"error": self.message}


class ValidationError(RelayError):
    status = 400
    message = "Invalid request"


class MissingParameter(ValidationError):
    message = "Missing url param"


class InvalidTarget(ValidationError):
    message = "Invalid url param"


class UpstreamUnavailable(RelayError):
    """Every attempt ended without a body to relay."""

    status = 502
    message = "No stream"
