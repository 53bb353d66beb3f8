from django.contrib.auth import views as auth_views
from django.urls import include, path, reverse_lazy
from rest_framework.routers import DefaultRouter

from . import views
from .apps import get_backend

# ==============================================================================
# DRF ROUTER
# ==============================================================================
router = DefaultRouter()
router.register(r'requests', views.ServiceRequestViewSet, basename='service-request')

# ==============================================================================
# URL PATTERNS
# ==============================================================================
app_name = 'service_requests'

backend = get_backend()

urlpatterns = [
    path('', views.home, name='home'),

    # --------------------------------------------------------------------------
    # AUTH, SIGN-UP & PASSWORD RESET
    # --------------------------------------------------------------------------
    path('login/', views.LoginView.as_view(), name='login'),
    path('logout/', views.LogoutView.as_view(), name='logout'),
    path('signup/', views.SignUpView.as_view(backend=backend), name='signup'),
    path('password-reset/', auth_views.PasswordResetView.as_view(
        template_name='service_requests/registration/password_reset_form.html',
        success_url=reverse_lazy('service_requests:password_reset_done'),
        email_template_name='service_requests/registration/password_reset_email.html',
    ), name='password_reset'),
    path('password-reset/done/', auth_views.PasswordResetDoneView.as_view(
        template_name='service_requests/registration/password_reset_done.html',
    ), name='password_reset_done'),
    path('password-reset/<uidb64>/<token>/', auth_views.PasswordResetConfirmView.as_view(
        template_name='service_requests/registration/password_reset_confirm.html',
        success_url=reverse_lazy('service_requests:password_reset_complete'),
    ), name='password_reset_confirm'),
    path('password-reset/complete/', auth_views.PasswordResetCompleteView.as_view(
        template_name='service_requests/registration/password_reset_complete.html',
    ), name='password_reset_complete'),

    # --------------------------------------------------------------------------
    # STAFF DASHBOARD
    # --------------------------------------------------------------------------
    path('staff/requests/', views.StaffRequestsView.as_view(backend=backend), name='staff-requests'),
    path('staff/requests/data/', views.StaffRequestsDataView.as_view(backend=backend), name='staff-requests-data'),
    path('staff/requests/clear-completed/', views.ClearCompletedRequestsView.as_view(backend=backend),
         name='clear-completed'),
    path('staff/requests/<int:request_id>/status/', views.UpdateRequestStatusView.as_view(backend=backend),
         name='request-status'),
    path('staff/tables/<int:table_id>/complete/', views.CompleteTableRequestsView.as_view(backend=backend),
         name='table-complete'),
    path('staff/reports/', views.ReportsView.as_view(backend=backend), name='reports'),

    # --------------------------------------------------------------------------
    # MANAGER: TABLES & QR CODES
    # --------------------------------------------------------------------------
    path('staff/tables/', views.TableAdminView.as_view(backend=backend), name='table-admin'),
    path('staff/tables/<int:table_id>/delete/', views.DeleteTableView.as_view(backend=backend),
         name='table-delete'),
    path('staff/qr-codes/', views.QRCodeListView.as_view(), name='qr-codes'),
    path('staff/qr-codes/<int:table_id>.png', views.TableQRCodeView.as_view(), name='qr-code-png'),

    # --------------------------------------------------------------------------
    # API
    # --------------------------------------------------------------------------
    path('api/v1/', include(router.urls)),

    # --------------------------------------------------------------------------
    # CUSTOMER TABLE PAGE (keep last: it matches any two path segments)
    # --------------------------------------------------------------------------
    path('<str:restaurant_slug>/<str:table_label>/', views.TablePageView.as_view(backend=backend),
         name='table-page'),
    path('<str:restaurant_slug>/<str:table_label>/cooldowns/', views.TableCooldownsView.as_view(backend=backend),
         name='table-cooldowns'),
    path('<str:restaurant_slug>/<str:table_label>/requests/', views.SubmitRequestView.as_view(backend=backend),
         name='table-submit'),
]
