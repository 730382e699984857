from django.urls import path
from . import views

urlpatterns = [
    path('production/', views.production_create, name='production-create'),
    path('production/qc-history/', views.qc_history_list, name='production-qc-history'),
    path('production/qc-history/<int:pk>/', views.qc_history_delete, name='production-qc-history-delete'),
    path('production/<int:pk>/', views.production_detail, name='production-detail'),
    path('production/<int:pk>/ready-for-qc/', views.production_ready_for_qc, name='production-ready-for-qc'),
    path('production/<int:pk>/approve/', views.production_approve, name='production-approve'),
    path('production/<int:pk>/reject/', views.production_reject, name='production-reject'),
    path('production/<int:pk>/finish/', views.production_finish, name='production-finish'),
]
