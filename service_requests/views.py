import json
import logging

from django.conf import settings
from django.contrib import messages
from django.contrib.auth import login
from django.contrib.auth import views as auth_views
from django.http import HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.urls import reverse_lazy
from django.utils import timezone
from django.views import View
from django.views.generic import TemplateView
from rest_framework import viewsets

from .dashboard import FILTER_CHOICES, build_snapshot
from .exceptions import ServiceError
from .forms import ServiceRequestForm, SignUpForm, TableForm
from .models import ServiceRequest
from .permissions import IsRestaurantStaff, ManagerRequiredMixin, RestaurantStaffRequiredMixin
from .request_types import REQUEST_OPTIONS, RequestStatus
from .serializers import ServiceRequestSerializer, serialize_request
from .utils import build_qr_png, table_public_url

logger = logging.getLogger(__name__)


def error_response(exc: ServiceError, **extra):
    return JsonResponse({"status": "error", "message": exc.message, **extra}, status=exc.status_code)


def read_payload(request):
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or "{}")
        except ValueError:
            raise ServiceError("Invalid JSON payload")
    return request.POST


class BackendMixin:
    """The ServiceBackend is handed in through ``as_view(backend=...)``."""
    backend = None


# ==============================================================================
# AUTHENTICATION & SIGN-UP
# ==============================================================================

class LoginView(auth_views.LoginView):
    template_name = 'service_requests/registration/login.html'
    redirect_authenticated_user = True


class LogoutView(auth_views.LogoutView):
    next_page = reverse_lazy('service_requests:login')


class SignUpView(BackendMixin, View):
    template_name = 'service_requests/registration/signup.html'

    def get(self, request):
        return render(request, self.template_name, {'form': SignUpForm()})

    def post(self, request):
        form = SignUpForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {'form': form}, status=400)
        try:
            user = self.backend.create_restaurant_account(form, form.cleaned_data['restaurant_name'])
        except ServiceError as exc:
            messages.error(request, exc.message)
            return render(request, self.template_name, {'form': form}, status=400)
        login(request, user, backend='django.contrib.auth.backends.ModelBackend')
        messages.success(request, f"Welcome! {user.restaurant.name} is ready.")
        return redirect('service_requests:table-admin')


def home(request):
    if request.user.is_authenticated:
        return redirect('service_requests:staff-requests')
    return redirect('service_requests:login')


# ==============================================================================
# CUSTOMER TABLE PAGE
# ==============================================================================

class TablePageView(BackendMixin, View):
    template_name = 'service_requests/customer/table.html'

    def get(self, request, restaurant_slug, table_label):
        try:
            restaurant, table = self.backend.resolve_table(restaurant_slug, table_label)
        except ServiceError as exc:
            return render(request, self.template_name, {'error': f"Error: {exc.message}"}, status=exc.status_code)

        now = timezone.now()
        tracker = self.backend.cooldown_tracker(table, now)
        options = [(option, tracker.entries[option.type]) for option in REQUEST_OPTIONS]
        return render(request, self.template_name, {
            'restaurant': restaurant,
            'table': table,
            'options': options,
            'cooldowns': tracker.as_dict(),
            'form': ServiceRequestForm(),
        })


class TableCooldownsView(BackendMixin, View):
    def get(self, request, restaurant_slug, table_label):
        try:
            _, table = self.backend.resolve_table(restaurant_slug, table_label)
        except ServiceError as exc:
            return error_response(exc)
        tracker = self.backend.cooldown_tracker(table)
        return JsonResponse({'status': 'success', 'cooldowns': tracker.as_dict()})


class SubmitRequestView(BackendMixin, View):
    def post(self, request, restaurant_slug, table_label):
        try:
            _, table = self.backend.resolve_table(restaurant_slug, table_label)
        except ServiceError as exc:
            return error_response(exc)

        form = ServiceRequestForm(request.POST, request.FILES)
        if not form.is_valid():
            message = next(iter(form.errors.values()))[0]
            return JsonResponse({'status': 'error', 'message': f"❌ {message}"}, status=400)

        now = timezone.now()
        tracker = self.backend.cooldown_tracker(table, now)
        request_type = form.cleaned_data['type']
        try:
            service_request = self.backend.submit_request(
                table, request_type, photo=form.cleaned_data.get('photo'), tracker=tracker, now=now,
            )
        except ServiceError as exc:
            return error_response(exc, cooldowns=tracker.as_dict(now))

        return JsonResponse({
            'status': 'success',
            'message': '✨ Request sent!',
            'request': serialize_request(service_request),
            'cooldowns': tracker.as_dict(now),
        })


# ==============================================================================
# STAFF DASHBOARD
# ==============================================================================

class StaffRequestsView(BackendMixin, RestaurantStaffRequiredMixin, TemplateView):
    template_name = 'service_requests/staff/requests.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        status = self.request.GET.get('status', 'all')
        if status not in FILTER_CHOICES:
            status = 'all'
        snapshot = build_snapshot(
            self.backend.list_tables(self.restaurant),
            self.backend.list_requests(self.restaurant),
            status,
        )
        context.update({
            'restaurant': self.restaurant,
            'snapshot': snapshot,
            'filter_choices': FILTER_CHOICES,
        })
        return context


class StaffRequestsDataView(BackendMixin, RestaurantStaffRequiredMixin, View):
    def get(self, request):
        status = request.GET.get('status', 'all')
        if status not in FILTER_CHOICES:
            return JsonResponse({'status': 'error', 'message': f"Invalid filter: {status}"}, status=400)
        snapshot = build_snapshot(
            self.backend.list_tables(self.restaurant),
            self.backend.list_requests(self.restaurant),
            status,
        )
        return JsonResponse({'status': 'success', **snapshot})


class UpdateRequestStatusView(BackendMixin, RestaurantStaffRequiredMixin, View):
    def post(self, request, request_id):
        try:
            new_status = read_payload(request).get('status')
            if new_status not in RequestStatus.values:
                raise ServiceError(f"Invalid status: {new_status}")
            obj = self.backend.update_status(self.restaurant, request_id, new_status)
        except ServiceError as exc:
            return error_response(exc)
        return JsonResponse({'status': 'success', 'request': serialize_request(obj)})


class CompleteTableRequestsView(BackendMixin, RestaurantStaffRequiredMixin, View):
    def post(self, request, table_id):
        try:
            completed = self.backend.complete_table_requests(self.restaurant, table_id)
        except ServiceError as exc:
            return error_response(exc)
        return JsonResponse({'status': 'success', 'completed': completed})


class ClearCompletedRequestsView(BackendMixin, RestaurantStaffRequiredMixin, View):
    def post(self, request):
        try:
            deleted = self.backend.clear_completed(self.restaurant, user=request.user)
        except Exception as exc:
            logger.error(f"Clearing completed requests failed: {exc}", exc_info=True)
            return JsonResponse({'status': 'error', 'message': "Could not clear completed requests."}, status=500)
        return JsonResponse({'status': 'success', 'deleted': deleted})


# ==============================================================================
# MANAGER: TABLES & QR CODES
# ==============================================================================

class TableAdminView(BackendMixin, ManagerRequiredMixin, View):
    template_name = 'service_requests/staff/tables.html'

    def render_page(self, request, form, status=200):
        return render(request, self.template_name, {
            'restaurant': self.restaurant,
            'tables': self.restaurant.tables.order_by('label'),
            'form': form,
        }, status=status)

    def get(self, request):
        return self.render_page(request, TableForm())

    def post(self, request):
        form = TableForm(request.POST)
        if not form.is_valid():
            return self.render_page(request, form, status=400)
        try:
            table = self.backend.add_table(self.restaurant, form.cleaned_data['label'])
        except ServiceError as exc:
            messages.error(request, exc.message)
            return self.render_page(request, form, status=400)
        messages.success(request, f"Table {table.label} added.")
        return redirect('service_requests:table-admin')


class DeleteTableView(BackendMixin, ManagerRequiredMixin, View):
    def post(self, request, table_id):
        try:
            self.backend.delete_table(self.restaurant, table_id, user=request.user)
        except ServiceError as exc:
            messages.error(request, exc.message)
        else:
            messages.success(request, "Table deleted.")
        return redirect('service_requests:table-admin')


class QRCodeListView(ManagerRequiredMixin, TemplateView):
    template_name = 'service_requests/staff/qr_codes.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        tables = list(self.restaurant.tables.order_by('label'))
        selected_ids = {int(pk) for pk in self.request.GET.getlist('tables') if pk.isdigit()}
        base_url = self.request.GET.get('base_url') or settings.SITE_URL
        context.update({
            'restaurant': self.restaurant,
            'tables': tables,
            'selected_ids': selected_ids,
            'base_url': base_url,
            'print_view': bool(self.request.GET.get('print')) and bool(selected_ids),
            'cards': [
                {'table': t, 'url': table_public_url(t, base_url)}
                for t in tables if t.pk in selected_ids
            ],
        })
        return context


class TableQRCodeView(ManagerRequiredMixin, View):
    def get(self, request, table_id):
        table = self.restaurant.tables.filter(pk=table_id).first()
        if table is None:
            return HttpResponse("Table not found", status=404, content_type="text/plain")
        png = build_qr_png(table_public_url(table, request.GET.get('base_url')))
        response = HttpResponse(png, content_type="image/png")
        response['Content-Disposition'] = f'inline; filename="table_{table.label}.png"'
        return response


# ==============================================================================
# REPORTS
# ==============================================================================

class ReportsView(BackendMixin, RestaurantStaffRequiredMixin, TemplateView):
    template_name = 'service_requests/staff/reports.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        type_counts = self.backend.request_type_counts(self.restaurant)
        hourly = self.backend.hourly_request_counts(self.restaurant)
        context.update({
            'restaurant': self.restaurant,
            'type_counts': type_counts,
            'hourly_counts': hourly,
            'type_chart': {
                'labels': [row['name'] for row in type_counts],
                'values': [row['value'] for row in type_counts],
            },
            'hourly_chart': {
                'labels': [row['hour'] for row in hourly],
                'values': [row['requests'] for row in hourly],
            },
        })
        return context


# ==============================================================================
# API VIEWSETS
# ==============================================================================

class ServiceRequestViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ServiceRequestSerializer
    permission_classes = [IsRestaurantStaff]

    def get_queryset(self):
        qs = (
            ServiceRequest.objects.for_restaurant(self.request.user.restaurant_id)
            .select_related('table__restaurant')
        )
        status = self.request.query_params.get('status')
        if status:
            qs = qs.filter(status=status)
        return qs
