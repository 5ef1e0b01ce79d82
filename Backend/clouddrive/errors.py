class DriveError(Exception):
    status_code = 500
    headers: dict[str, str] | None = None

    def __init__(self, detail: str = "", headers: dict[str, str] | None = None):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__
        if headers is not None:
            self.headers = headers


class Unauthenticated(DriveError):
    status_code = 401
    headers = {"WWW-Authenticate": "Bearer"}


class NotFound(DriveError):
    status_code = 404


class UserNotFound(NotFound):
    pass


class AlreadyExists(DriveError):
    status_code = 409


class AlreadyShared(AlreadyExists):
    pass


class Conflict(DriveError):
    status_code = 409


class InvalidRequest(DriveError):
    status_code = 400


class UpstreamFailure(DriveError):
    """A metadata or object store call failed."""

    status_code = 502


class CycleDetected(DriveError):
    """The parent chain of a node loops back on itself."""

    status_code = 500
