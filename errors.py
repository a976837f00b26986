# errors.py


class DairyError(Exception):
    """Base class for failures the user can fix and retry."""

    status_code = 400


class ValidationError(DairyError):
    pass


class StatusError(DairyError):
    # e.g. approving a milkman that was already rejected
    status_code = 409


class PaymentError(DairyError):
    pass


class NotFoundError(DairyError):
    status_code = 404
