from __future__ import annotations


class DomainError(Exception):
    """Base for failures the core reports to its callers."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(DomainError):
    status_code = 404


class InvalidSubtype(DomainError):
    status_code = 400


class InvalidRelationship(DomainError):
    status_code = 400


class DuplicateRelationship(DomainError):
    status_code = 409


class Conflict(DomainError):
    status_code = 409


class Forbidden(DomainError):
    status_code = 403
