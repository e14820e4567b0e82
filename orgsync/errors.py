"""
orgsync.errors — Domain exceptions
====================================

Services raise these; :mod:`orgsync.api.main` maps each one to an HTTP
status and returns the message as ``{"detail": ...}``.
"""

from __future__ import annotations


class OrgSyncError(ValueError):
    """Base class for service-level failures surfaced to the caller."""

    status_code = 400


class ValidationError(OrgSyncError):
    """Input failed a business rule (missing field, bad range, etc.)."""

    status_code = 400


class ForbiddenError(OrgSyncError):
    """The acting user lacks the role required for the operation."""

    status_code = 403


class NotFoundError(OrgSyncError):
    """A referenced row does not exist."""

    status_code = 404


class ConflictError(OrgSyncError):
    """The write would duplicate a one-per-user action or unique key."""

    status_code = 409
