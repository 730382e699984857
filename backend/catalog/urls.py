from django.urls import path
from . import views

urlpatterns = [
    path('products/<int:pk>/', views.product_detail, name='product-detail'),
    path('products/<int:pk>/movements/', views.product_movements, name='product-movements'),
]
