from rest_framework import serializers

from .models import Payment, Subscription
from .plans import PlanNotFoundError, get_plan


class PaymentSerializer(serializers.ModelSerializer):
    plan_name = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            'id', 'plan_id', 'plan_name', 'amount', 'currency', 'provider', 'status',
            'external_id', 'phone_number', 'failure_reason', 'paid_at', 'created_at',
        ]
        read_only_fields = fields

    def get_plan_name(self, obj):
        try:
            return get_plan(obj.plan_id).name
        except PlanNotFoundError:
            return obj.plan_id


class SubscriptionSerializer(serializers.ModelSerializer):
    plan = serializers.SerializerMethodField()
    is_active = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            'id', 'plan_id', 'plan', 'category', 'status', 'is_active', 'payment_method',
            'starts_at', 'expires_at', 'auto_renew', 'created_at',
        ]
        read_only_fields = fields

    def get_plan(self, obj):
        try:
            return get_plan(obj.plan_id).to_dict()
        except PlanNotFoundError:
            return None

    def get_is_active(self, obj):
        return obj.is_active()


class InitiatePaymentSerializer(serializers.Serializer):
    plan_id = serializers.CharField(max_length=60)
    provider = serializers.ChoiceField(choices=[
        Payment.Provider.STRIPE,
        Payment.Provider.MTN_MOMO,
        Payment.Provider.ORANGE_MONEY,
    ])
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate_plan_id(self, value):
        try:
            get_plan(value)
        except PlanNotFoundError:
            raise serializers.ValidationError('Offre inconnue')
        return value

    def validate(self, attrs):
        if attrs['provider'] != Payment.Provider.STRIPE and not attrs.get('phone_number'):
            raise serializers.ValidationError({'phone_number': 'Numéro requis pour le Mobile Money'})
        return attrs


class StripeConfirmSerializer(serializers.Serializer):
    payment_intent_id = serializers.CharField(max_length=120)


class MTNSendSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1)
    phone_number = serializers.CharField(max_length=20)
    reason = serializers.CharField(max_length=160, required=False, allow_blank=True, default='')
