"""Permission classes for the slots API."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore

from apps.users.identity import caller_from_request


class IsAdminIdentity(permissions.BasePermission):
    """Only callers whose identity carries the admin flag."""

    def has_permission(self, request, view) -> bool:  # type: ignore
        caller = caller_from_request(request)
        return bool(caller and caller.is_admin)
