class HelpLineError(Exception):
    """Base of the error taxonomy; carries the HTTP status it maps to."""

    http_status = 500

    def __init__(self, msg: str, *, http_status: int | None = None) -> None:
        super().__init__(msg)
        self.msg = msg
        if http_status is not None:
            self.http_status = http_status


class ValidationError(HelpLineError):
    http_status = 400


class Forbidden(HelpLineError):
    """Wrong role for the operation."""

    http_status = 403


class NotAuthorized(Forbidden):
    """Right role, but not the owner or assignee of the record."""

    http_status = 401


class NotFound(HelpLineError):
    http_status = 404


class Conflict(HelpLineError):
    """Transition not allowed from the record's current status."""

    http_status = 400


class ServerError(HelpLineError):
    http_status = 500
