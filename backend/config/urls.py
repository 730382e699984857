"""
URL configuration for backend project.

Every API app is mounted under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Production Inventory Admin Panel"
admin.site.site_title = "Production Inventory Admin Portal"
admin.site.index_title = "Production, BOM and stock ledger"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.bom.urls')),
    path('api/v1/', include('backend.production.urls')),
    path('api/v1/', include('backend.quality.urls')),
]
