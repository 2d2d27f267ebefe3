from __future__ import annotations


class DomainError(Exception):
    pass


class DomainValidationError(DomainError):
    pass


class DomainInvariantError(DomainError):
    pass


class DomainDependencyError(DomainError):
    pass


class UnknownCityError(DomainValidationError):
    pass


class UnknownFieldError(DomainValidationError):
    pass


class IllegalTransitionError(DomainInvariantError):
    pass


class SubmissionInProgressError(DomainInvariantError):
    pass


class UnknownSessionError(DomainError):
    pass


class LocationUnavailableError(DomainDependencyError):
    pass
