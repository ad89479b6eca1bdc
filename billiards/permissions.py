"""
permissions.py

Caller resolution and company scoping for the API, plus role-based admin
access control.
"""

from django.contrib import admin

from .exceptions import AuthorizationError, MissingProfileError
from .models import Profile


# =============================================================================
# === API CALLER RESOLUTION ===================================================
# =============================================================================

def get_caller_profile(user) -> Profile:
    """
    Return the Profile of an authenticated user.

    Every caller needs a profile; only a SUPERADMIN may lack a company, in
    which case it is unscoped and sees every company.
    """
    profile = getattr(user, "profile", None)
    if profile is None or not profile.active:
        raise MissingProfileError()
    if profile.company_id is None and not profile.is_superadmin:
        raise MissingProfileError("User profile has no company")
    return profile


def ensure_company_access(profile, company_id, message=None):
    """Reject a caller whose company does not own the entity."""
    if profile is None or profile.company_id is None:
        return
    if profile.company_id != company_id:
        raise AuthorizationError(message)


def scope_to_company(queryset, profile, lookup="company"):
    if profile is None or profile.company_id is None:
        return queryset
    return queryset.filter(**{f"{lookup}_id": profile.company_id})


# =============================================================================
# === ADMIN ===================================================================
# =============================================================================

def _profile(request):
    user = request.user
    if not user.is_authenticated:
        return None
    return getattr(user, "profile", None)


class RoleRestrictedAdmin(admin.ModelAdmin):
    """
    Base admin that enforces role-based view, add, change and delete
    permissions. Sellers may only look.
    """
    manager_roles = (Profile.Roles.ADMIN, Profile.Roles.SUPERADMIN)

    def _is_manager(self, request):
        if request.user.is_superuser:
            return True
        profile = _profile(request)
        return profile is not None and profile.role in self.manager_roles

    def has_module_permission(self, request):
        return request.user.is_authenticated and (
            request.user.is_superuser or _profile(request) is not None
        )

    def has_view_permission(self, request, obj=None):
        return self.has_module_permission(request)

    def has_add_permission(self, request):
        return self._is_manager(request)

    def has_change_permission(self, request, obj=None):
        return self._is_manager(request)

    def has_delete_permission(self, request, obj=None):
        return self._is_manager(request)


class CompanyScopedAdmin(RoleRestrictedAdmin):
    """Restrict queryset visibility to the staff member's company."""
    company_lookup = "company"

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        profile = _profile(request)
        if profile is None:
            return qs.none()
        return scope_to_company(qs, profile, self.company_lookup)
