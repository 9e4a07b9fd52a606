"""
Request validation. Responses are shaped by the `_serialize_*` helpers in
each resource module; these serializers only check and normalize input.
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import serializers
from rest_framework.validators import UniqueValidator

from .models import (
    CUSTOMIZATION_RELATIONS,
    Category,
    Order,
    OrderHasPaid,
    Product,
    Subscriber,
)

User = get_user_model()

_MONEY = {"max_digits": 10, "decimal_places": 2, "min_value": Decimal("0")}


# -----------------------
# Catalog
# -----------------------

class CategorySerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    slug = serializers.SlugField(max_length=255, required=False, allow_null=True, allow_blank=True)

    def validate_slug(self, value):
        if not value:
            return None
        qs = Category.objects.filter(slug=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("The slug has already been taken.")
        return value


class CustomizationOptionField(serializers.Field):
    """
    One option of a customization gallery. Accepts

        {"name": "Light", "image": "<base64>", "images": ["<base64>", ...]}

    or a bare base64 string, which becomes an unnamed option whose direct
    image is that string.
    """
    default_error_messages = {
        "invalid": "Each option must be an object with a name, or a base64 image string.",
    }

    def to_internal_value(self, data):
        if isinstance(data, str):
            if not data.strip():
                self.fail("invalid")
            return {"name": None, "image": data, "images": []}
        if not isinstance(data, dict):
            self.fail("invalid")

        errors = {}
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            errors["name"] = ["This field is required."]
        elif len(name.strip()) > 255:
            errors["name"] = ["Ensure this field has no more than 255 characters."]

        image = data.get("image")
        if image is not None and not isinstance(image, str):
            errors["image"] = ["Must be a base64 encoded string."]

        images = data.get("images")
        if images is None:
            images = []
        if not isinstance(images, list) or not all(isinstance(i, str) for i in images):
            errors["images"] = ["Must be a list of base64 encoded strings."]

        if errors:
            raise serializers.ValidationError(errors)
        return {
            "name": name.strip(),
            "image": image or None,
            "images": [i for i in images if i.strip()],
        }

    def to_representation(self, value):
        return value


class ProductSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    slug = serializers.SlugField(max_length=255, required=False, allow_null=True, allow_blank=True)
    type = serializers.CharField()
    price = serializers.DecimalField(**_MONEY)
    offer_price = serializers.DecimalField(required=False, allow_null=True, **_MONEY)
    status = serializers.BooleanField()
    category_id = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())
    short_description = serializers.CharField(max_length=500, required=False, allow_null=True, allow_blank=True)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    image = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    images = serializers.ListField(
        child=serializers.CharField(allow_blank=True), required=False, allow_null=True, max_length=10,
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for relation in CUSTOMIZATION_RELATIONS:
            self.fields[relation] = serializers.ListField(child=CustomizationOptionField(), required=False)

    def validate_type(self, value):
        value = (value or "").strip().lower()
        if value not in Product.RELATIONS_BY_TYPE:
            raise serializers.ValidationError("The selected type is invalid.")
        return value

    def validate_slug(self, value):
        if not value:
            return None
        qs = Product.objects.filter(slug=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("The slug has already been taken.")
        return value

    def validate(self, attrs):
        # on update either side may come from the stored row
        price = attrs.get("price", getattr(self.instance, "price", None))
        if "offer_price" in attrs:
            offer_price = attrs["offer_price"]
        else:
            offer_price = getattr(self.instance, "offer_price", None)
        if offer_price is not None and price is not None and offer_price >= price:
            raise serializers.ValidationError({"offer_price": ["The offer price must be less than price."]})

        product_type = attrs.get("type") or getattr(self.instance, "type", Product.TYPE_SIMPLE)
        allowed = Product.RELATIONS_BY_TYPE.get(product_type, ())
        for relation in CUSTOMIZATION_RELATIONS:
            if relation in attrs and relation not in allowed:
                attrs.pop(relation)
        return attrs


# -----------------------
# Orders & payments
# -----------------------

class OrderItemCreateSerializer(serializers.Serializer):
    product_id = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(**_MONEY)
    final_product_images = serializers.ListField(
        child=serializers.CharField(), required=False, allow_empty=True,
    )


class OrderCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20)
    address = serializers.CharField(max_length=500)
    total = serializers.DecimalField(**_MONEY)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    items = OrderItemCreateSerializer(many=True, allow_empty=False)
    payment_method = serializers.CharField(max_length=50)
    payment_status = serializers.ChoiceField(choices=OrderHasPaid.STATUS_CHOICES, default="pending")
    transaction_id = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    final_pdf = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class OrderItemUpdateSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False)
    product_id = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False)
    quantity = serializers.IntegerField(min_value=1, required=False)
    price = serializers.DecimalField(required=False, **_MONEY)

    def validate(self, attrs):
        if "id" not in attrs:
            missing = {f: ["This field is required."] for f in ("product_id", "quantity") if f not in attrs}
            if missing:
                raise serializers.ValidationError(missing)
        return attrs


class OrderPaymentUpdateSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False)
    amount = serializers.DecimalField(required=False, **_MONEY)
    method = serializers.CharField(max_length=50, required=False)
    status = serializers.ChoiceField(choices=OrderHasPaid.STATUS_CHOICES, required=False)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate(self, attrs):
        if "id" not in attrs:
            missing = {f: ["This field is required."] for f in ("amount", "method") if f not in attrs}
            if missing:
                raise serializers.ValidationError(missing)
        return attrs


class OrderUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_null=True)
    email = serializers.EmailField(required=False, allow_null=True)
    phone = serializers.CharField(max_length=20, required=False, allow_null=True)
    address = serializers.CharField(max_length=500, required=False, allow_null=True)
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES, required=False, allow_null=True)
    is_paid = serializers.BooleanField(required=False)
    is_customized = serializers.BooleanField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = OrderItemUpdateSerializer(many=True, required=False)
    payments = OrderPaymentUpdateSerializer(many=True, required=False)


class PaymentSerializer(serializers.Serializer):
    order_id = serializers.PrimaryKeyRelatedField(queryset=Order.objects.all())
    amount = serializers.DecimalField(**_MONEY)
    method = serializers.CharField(max_length=50)
    status = serializers.ChoiceField(choices=OrderHasPaid.STATUS_CHOICES)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class PreOrderSerializer(serializers.Serializer):
    product_id = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    product_quantity = serializers.IntegerField(min_value=1)
    final_product = serializers.JSONField(required=False)
    final_product_price = serializers.DecimalField(required=False, allow_null=True, **_MONEY)


# -----------------------
# Accounts
# -----------------------

class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    password = serializers.CharField(min_length=8, write_only=True)
    password_confirmation = serializers.CharField(write_only=True)

    def validate_email(self, value):
        # username mirrors the email, so either one reserves the address
        taken = User.objects.filter(Q(email__iexact=value) | Q(username__iexact=value))
        if taken.exists():
            raise serializers.ValidationError("The email has already been taken.")
        return value.lower()

    def validate(self, attrs):
        if attrs["password"] != attrs["password_confirmation"]:
            raise serializers.ValidationError({"password": ["The password confirmation does not match."]})
        return attrs


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class ProfileSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    email = serializers.EmailField(required=False)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)

    def validate_email(self, value):
        qs = User.objects.filter(Q(email__iexact=value) | Q(username__iexact=value))
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("The email has already been taken.")
        return value.lower()


class OtpRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()


class OtpVerifySerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.RegexField(r"^\d{4}$", error_messages={"invalid": "The OTP must be 4 digits."})


class PasswordResetSerializer(OtpVerifySerializer):
    password = serializers.CharField(min_length=8, write_only=True)
    password_confirmation = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs["password"] != attrs["password_confirmation"]:
            raise serializers.ValidationError({"password": ["The password confirmation does not match."]})
        return attrs


# -----------------------
# Contact / newsletter
# -----------------------

class ContactSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    subject = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    message = serializers.CharField()


class SubscriberSerializer(serializers.Serializer):
    email = serializers.EmailField(
        validators=[UniqueValidator(
            queryset=Subscriber.objects.all(), lookup="iexact", message="The email has already been taken.",
        )],
    )

    def validate_email(self, value):
        return value.lower()
