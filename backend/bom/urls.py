from django.urls import path
from . import views

urlpatterns = [
    path('bom/', views.bom_create, name='bom-create'),
    path('bom/lookup/', views.bom_lookup, name='bom-lookup'),
    path('bom/<int:pk>/', views.bom_detail, name='bom-detail'),
]
