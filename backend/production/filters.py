import django_filters
from .models import ProductionQCRecord


class ProductionQCRecordFilter(django_filters.FilterSet):
    production_id = django_filters.CharFilter(field_name='production__production_id', lookup_expr='iexact')
    product_code = django_filters.CharFilter(field_name='product__product_id', lookup_expr='iexact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = ProductionQCRecord
        fields = ['production', 'product', 'action']
