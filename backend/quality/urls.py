from django.urls import path

from . import views

urlpatterns = [
    path('gate-entries/', views.gate_entry_create, name='gate-entry-create'),
    path('gate-entries/<int:pk>/verify/', views.gate_entry_verify, name='gate-entry-verify'),
    path('quality-checks/', views.quality_check_list, name='quality-check-list'),
    path('quality-checks/available-products/', views.available_products, name='quality-check-available-products'),
    path('quality-checks/<int:pk>/', views.quality_check_detail, name='quality-check-detail'),
]
