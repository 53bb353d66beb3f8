class ServiceError(Exception):
    """Any failure that ends up as a message shown to the user."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFound(ServiceError):
    status_code = 404


class PhotoRequired(ServiceError):
    pass


class InvalidStatusTransition(ServiceError):
    pass


class CooldownActive(ServiceError):
    status_code = 429

    def __init__(self, request_type, remaining, message):
        super().__init__(message)
        self.request_type = request_type
        self.remaining = remaining
