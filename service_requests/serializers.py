from rest_framework import serializers

from .models import ServiceRequest, Table
from .request_types import OPTIONS_BY_TYPE


# ==============================================================================
# Table Serializer
# ==============================================================================

class TableSerializer(serializers.ModelSerializer):
    class Meta:
        model = Table
        fields = ["id", "label", "restaurant_id"]
        read_only_fields = fields


# ==============================================================================
# Service Request Serializer
# ==============================================================================

class ServiceRequestSerializer(serializers.ModelSerializer):
    """
    A request row with the display fields of its table and restaurant, the
    shape used by JSON views, the API and websocket snapshots alike.
    """

    table_id = serializers.IntegerField(read_only=True)
    table_label = serializers.CharField(source="table.label", read_only=True)
    restaurant_id = serializers.IntegerField(source="table.restaurant_id", read_only=True)
    restaurant_name = serializers.CharField(source="table.restaurant.name", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    label = serializers.SerializerMethodField()
    icon = serializers.SerializerMethodField()

    class Meta:
        model = ServiceRequest
        fields = [
            "id",
            "type",
            "label",
            "icon",
            "status",
            "status_display",
            "photo_url",
            "created_at",
            "table_id",
            "table_label",
            "restaurant_id",
            "restaurant_name",
        ]
        read_only_fields = fields

    def get_label(self, obj):
        option = OPTIONS_BY_TYPE.get(obj.type)
        return option.staff_label if option else obj.type

    def get_icon(self, obj):
        option = OPTIONS_BY_TYPE.get(obj.type)
        return option.icon if option else ""


# ==============================================================================
# Integration Helpers: plain dicts for Channels and the dashboard
# ==============================================================================

def serialize_request(service_request):
    return dict(ServiceRequestSerializer(service_request).data)


def serialize_requests(queryset):
    return [dict(row) for row in ServiceRequestSerializer(queryset, many=True).data]


def serialize_tables(queryset):
    return [dict(row) for row in TableSerializer(queryset, many=True).data]
