from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import PMSViewSet

router = DefaultRouter()
router.register(r'', PMSViewSet, basename='pms')

urlpatterns = [
    path('', include(router.urls)),
]
