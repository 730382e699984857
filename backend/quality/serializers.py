from decimal import Decimal

from rest_framework import serializers

from backend.production.serializers import quantity_field
from .models import GateEntry, GateEntryItem, QualityCheck


class GateEntryItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = GateEntryItem
        fields = ['id', 'item_name', 'item_quantity', 'ordered_quantity', 'remaining_quantity']
        read_only_fields = ['remaining_quantity']

    def validate_item_quantity(self, value):
        if value < 0:
            raise serializers.ValidationError('Item quantity cannot be negative')
        return value


class GateEntrySerializer(serializers.ModelSerializer):
    items = GateEntryItemSerializer(many=True)

    class Meta:
        model = GateEntry
        fields = ['id', 'po_number', 'invoice_number', 'company_name', 'status', 'items', 'created_by',
                  'created_at', 'updated_at']
        read_only_fields = ['status', 'created_by', 'created_at', 'updated_at']

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('A gate entry needs at least one item')
        return value

    def create(self, validated_data):
        items = validated_data.pop('items')
        gate_entry = GateEntry.objects.create(**validated_data)
        for item in items:
            GateEntryItem.objects.create(gate_entry=gate_entry, **item)
        return gate_entry


class QualityCheckSerializer(serializers.ModelSerializer):
    po_number = serializers.CharField(source='gate_entry.po_number', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = QualityCheck
        fields = ['id', 'gate_entry', 'po_number', 'item', 'item_name', 'approved_quantity', 'rejected_quantity',
                  'total_quantity', 'max_allowed_quantity', 'remarks', 'created_by', 'created_by_username',
                  'created_at', 'updated_at']
        read_only_fields = fields


class QualityCheckCreateSerializer(serializers.Serializer):
    gate_entry = serializers.IntegerField()
    item = serializers.IntegerField()
    approved_quantity = quantity_field(required=False, default=Decimal('0'))
    rejected_quantity = quantity_field(required=False, default=Decimal('0'))
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class QualityCheckUpdateSerializer(serializers.Serializer):
    approved_quantity = quantity_field(required=False)
    rejected_quantity = quantity_field(required=False)
    remarks = serializers.CharField(required=False, allow_blank=True)


class AvailableItemSerializer(serializers.ModelSerializer):
    gate_entry_id = serializers.IntegerField(source='gate_entry.id', read_only=True)
    po_number = serializers.CharField(source='gate_entry.po_number', read_only=True)
    company_name = serializers.CharField(source='gate_entry.company_name', read_only=True)

    class Meta:
        model = GateEntryItem
        fields = ['id', 'gate_entry_id', 'po_number', 'company_name', 'item_name', 'item_quantity',
                  'remaining_quantity']
