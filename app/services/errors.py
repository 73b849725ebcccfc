"""
Domain errors raised by the tariff services.
Routers translate them into HTTP responses.
"""


class TariffDeskError(Exception):
    """Base class for tariff desk errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TariffValidationError(TariffDeskError):
    """A payload failed a business rule before anything was written."""

    status_code = 422


class NotFoundError(TariffDeskError):
    status_code = 404


class RenewalLinkError(TariffDeskError):
    """The renewal CSP event could not be linked to the tariff family."""

    status_code = 409
