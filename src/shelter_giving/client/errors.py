GENERIC_FAILURE = "An unexpected error occurred. Please try again."


class ShelterClientError(Exception):
    """Base for every failure the donor-side flow reports to the user."""

    def __init__(self, message: str = GENERIC_FAILURE):
        super().__init__(message)
        self.user_message = message


class ValidationError(ShelterClientError):
    pass


class NotReadyError(ShelterClientError):
    pass


class NetworkError(ShelterClientError):
    pass


class ServerError(ShelterClientError):
    def __init__(self, message: str = GENERIC_FAILURE, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PaymentError(ShelterClientError):
    pass


class IllegalTransition(Exception):
    def __init__(self, state, event):
        super().__init__(f"{event.name} is not allowed while {state.name}")
        self.state = state
        self.event = event
