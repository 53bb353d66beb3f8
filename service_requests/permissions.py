"""
permissions.py

Role-based access for staff pages, the API and the Django admin.
"""

from django.contrib import admin
from django.contrib.auth.mixins import LoginRequiredMixin
from django.shortcuts import render
from rest_framework import permissions

from .models import CustomUser

ACCESS_DENIED_MANAGERS = "Access Denied: This page is for managers only."
ACCESS_DENIED_NO_RESTAURANT = "Access Denied: your account is not linked to a restaurant."


def is_manager(user) -> bool:
    return user.is_authenticated and (user.is_superuser or user.role == CustomUser.Roles.MANAGER)


def render_access_denied(request, message):
    return render(request, "service_requests/access_denied.html", {"message": message}, status=403)


class RestaurantStaffRequiredMixin(LoginRequiredMixin):
    """Authenticated user attached to a restaurant. Exposes ``self.restaurant``."""

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        self.restaurant = request.user.restaurant
        if self.restaurant is None:
            return render_access_denied(request, ACCESS_DENIED_NO_RESTAURANT)
        return super().dispatch(request, *args, **kwargs)


class ManagerRequiredMixin(RestaurantStaffRequiredMixin):
    def dispatch(self, request, *args, **kwargs):
        if request.user.is_authenticated and not is_manager(request.user):
            return render_access_denied(request, ACCESS_DENIED_MANAGERS)
        return super().dispatch(request, *args, **kwargs)


class IsRestaurantStaff(permissions.BasePermission):
    """DRF: authenticated and linked to a restaurant."""

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.restaurant_id)


class RoleRestrictedAdmin(admin.ModelAdmin):
    """Managers see and edit their module; plain staff may only view."""

    def has_module_permission(self, request):
        return is_manager(request.user)

    def has_view_permission(self, request, obj=None):
        u = request.user
        return u.is_authenticated and (u.is_superuser or u.role in CustomUser.Roles.values)

    def has_add_permission(self, request):
        return is_manager(request.user)

    def has_change_permission(self, request, obj=None):
        return is_manager(request.user)

    def has_delete_permission(self, request, obj=None):
        return is_manager(request.user)


class RestaurantScopedAdmin(RoleRestrictedAdmin):
    """Restrict queryset visibility to the user's restaurant."""

    restaurant_lookup = "restaurant"

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        u = request.user
        if u.is_superuser:
            return qs
        if u.restaurant_id:
            return qs.filter(**{self.restaurant_lookup: u.restaurant_id})
        return qs.none()

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        # non-superusers only ever pick their own restaurant
        if db_field.name == "restaurant" and not request.user.is_superuser:
            kwargs["queryset"] = db_field.remote_field.model.objects.filter(pk=request.user.restaurant_id)
        return super().formfield_for_foreignkey(db_field, request, **kwargs)
