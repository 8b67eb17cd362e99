# apps/gateway/serializers.py
from rest_framework import serializers

from .enums import Port
from .models import Transaction, TransactionLog


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = (
            "id",
            "port",
            "amount",
            "ref_id",
            "tracking_code",
            "status",
            "payer_meta",
            "payment_date",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class TransactionLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = TransactionLog
        fields = ["id", "status_code", "message", "created_at"]
        read_only_fields = fields


class PaymentStartSerializer(serializers.Serializer):
    port = serializers.CharField(max_length=32)
    amount = serializers.IntegerField(min_value=1)
    callback_url = serializers.URLField(required=False)

    def validate_port(self, value: str) -> str:
        # имя порта без учёта регистра: "mellat" == "MELLAT"
        name = value.strip().upper()
        if name not in Port.values:
            raise serializers.ValidationError(f"Unsupported port: {value}")
        return name
