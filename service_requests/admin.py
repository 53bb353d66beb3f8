# service_requests/admin.py
import csv
import logging

from django.contrib import admin
from django.http import HttpResponse
from django.utils import timezone
from django.utils.html import format_html

from .models import CustomUser, Restaurant, ServiceRequest, Table
from .permissions import RestaurantScopedAdmin, RoleRestrictedAdmin, is_manager
from .request_types import RequestStatus

# =============================================================================
# === GLOBAL UTILITIES ========================================================
# =============================================================================

@admin.action(description="Mark selected as completed")
def mark_completed(modeladmin, request, queryset):
    # per-object save so each change reaches the live dashboards
    for obj in queryset.exclude(status=RequestStatus.COMPLETED):
        obj.advance_to(RequestStatus.COMPLETED)
        obj.save(update_fields=["status", "updated_at"])


# =============================================================================
# === USER ADMIN ==============================================================
# =============================================================================

@admin.register(CustomUser)
class CustomUserAdmin(RestaurantScopedAdmin):
    list_display = ("username", "email", "role", "restaurant", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("username", "email")
    readonly_fields = ("last_login", "date_joined")
    fields = ("username", "email", "first_name", "last_name", "role", "restaurant", "is_active",
              "last_login", "date_joined")
    ordering = ("-date_joined",)

    def save_model(self, request, obj, form, change):
        # managers may only staff their own restaurant
        if not request.user.is_superuser:
            obj.restaurant = request.user.restaurant
        super().save_model(request, obj, form, change)


# =============================================================================
# === RESTAURANT & TABLE ADMIN ===============================================
# =============================================================================

class TableInline(admin.TabularInline):
    model = Table
    extra = 1
    readonly_fields = ("public_link",)

    def public_link(self, obj):
        if obj.pk:
            return format_html('<a href="{}" target="_blank">{}</a>', obj.get_absolute_url(), obj.get_absolute_url())
        return "-"
    public_link.short_description = "Customer page"


@admin.register(Restaurant)
class RestaurantAdmin(RoleRestrictedAdmin):
    list_display = ("name", "slug", "owner", "created_at")
    search_fields = ("name", "slug")
    readonly_fields = ("created_at",)
    inlines = [TableInline]
    ordering = ("name",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        return qs.filter(pk=request.user.restaurant_id)


@admin.register(Table)
class TableAdmin(RestaurantScopedAdmin):
    list_display = ("label", "restaurant", "created_at")
    list_filter = ("restaurant",)
    search_fields = ("label",)
    ordering = ("restaurant", "label")


# =============================================================================
# === SERVICE REQUEST ADMIN ===================================================
# =============================================================================

@admin.register(ServiceRequest)
class ServiceRequestAdmin(RestaurantScopedAdmin):
    restaurant_lookup = "table__restaurant"
    list_display = ("id", "type", "table", "status", "photo_preview", "created_at")
    list_filter = ("status", "type", "created_at")
    search_fields = ("table__label",)
    readonly_fields = ("table", "type", "photo_url", "created_at", "updated_at")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    actions = [mark_completed, "export_selected_to_csv"]

    def has_add_permission(self, request):
        return False

    @admin.display(description="Photo")
    def photo_preview(self, obj):
        if obj.photo_url:
            return format_html('<img src="{}" width="60" height="60" />', obj.photo_url)
        return "-"

    @admin.action(description="⬇️ Export selected requests to CSV")
    def export_selected_to_csv(self, request, queryset):
        if not is_manager(request.user):
            self.message_user(request, "🚫 You do not have permission to export requests.", level="error")
            return None

        response = HttpResponse(content_type="text/csv")
        filename = f"service_requests_{timezone.now().strftime('%Y%m%d_%H%M%S')}.csv"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'

        writer = csv.writer(response)
        writer.writerow(["ID", "Created", "Restaurant", "Table", "Type", "Status", "Photo"])
        for obj in queryset.select_related("table__restaurant"):
            writer.writerow([
                obj.pk,
                obj.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                obj.table.restaurant.name,
                obj.table.label,
                obj.type,
                obj.status,
                obj.photo_url or "",
            ])

        logging.getLogger("audit").info(
            f"User {request.user.username} exported {queryset.count()} requests "
            f"on {timezone.now():%Y-%m-%d %H:%M} from IP={request.META.get('REMOTE_ADDR')}"
        )
        return response
