"""Scheduling error taxonomy.

Every error carries the HTTP status it maps to so the API layer can surface
it verbatim. None of these are retried automatically.
"""

from fastapi import status


class SchedulingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Scheduling request rejected.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class SlotUnavailable(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This time is already booked.'


class InvalidTimeRange(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Start time must be before end time.'


class InvalidTransition(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This status change is not allowed.'

    def __init__(self, current: str, target: str, detail: str | None = None):
        self.current = current
        self.target = target
        super().__init__(detail or f'Cannot move appointment from {current} to {target}.')


class StaffNotAvailable(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Staff member is not available for the requested time.'


class PaymentRequired(SchedulingError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = 'Payment has not been confirmed.'


class PaymentFailed(SchedulingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'The payment provider could not process the request.'


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'


class PermissionDenied(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not allowed to perform this action.'
