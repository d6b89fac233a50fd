"""
URL configuration for the timesheet backend.

API routes live under /api/, docs under /swagger/ and /redoc/.
"""
from django.contrib import admin
from django.urls import include, path
from rest_framework import permissions
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

schema_view = get_schema_view(
    openapi.Info(
        title="Timesheet API",
        default_version='v1',
        description="Timesheets, PMS deadlines and dual-stage approvals",
        contact=openapi.Contact(email="contact@hrms.local"),
        license=openapi.License(name="BSD License"),
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('api/', include('employees.urls')),
    path('api/', include('timesheets.urls')),
    path('api/', include('notifications.urls')),
    path('api/pms/', include('pms.urls')),
    path('api/deadlines/', include('deadlines.urls')),
    path('swagger<format>/', schema_view.without_ui(cache_timeout=0), name='schema-json'),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
