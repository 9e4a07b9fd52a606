from decimal import Decimal

from django.db import models
from django.contrib.auth.models import AbstractUser
from django.conf import settings # for AUTH_USER_MODEL-safe FKs
from django.core.validators import MinValueValidator
from django.core.exceptions import ValidationError


class User(AbstractUser):
    name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(unique=True, db_index=True)
    phone = models.CharField(max_length=20, blank=True, default="")
    address = models.TextField(blank=True, default="")
    otp_hash = models.CharField(max_length=255, blank=True, default="")
    otp_expires_at = models.DateTimeField(null=True, blank=True)
    otp_attempts = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    def __str__(self):
        return self.name or self.email


class Category(models.Model):
    name = models.CharField(max_length=255, db_index=True)
    slug = models.SlugField(max_length=255, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name


# === CUSTOMIZATION RELATIONS ===
# Sub-option galleries a buyer picks from. Customizable products carry the
# nine base relations, trading cards additionally carry front and back art.
BASE_CUSTOMIZATION_RELATIONS = (
    "skin_tones", "hairs", "noses", "eyes", "mouths",
    "dresses", "crowns", "base_cards", "beards",
)
TRADING_CUSTOMIZATION_RELATIONS = BASE_CUSTOMIZATION_RELATIONS + (
    "trading_fronts", "trading_backs",
)
CUSTOMIZATION_RELATIONS = TRADING_CUSTOMIZATION_RELATIONS


class Product(models.Model):
    TYPE_SIMPLE = "simple"
    TYPE_CUSTOMIZABLE = "customizable"
    TYPE_TRADING = "trading"
    TYPE_CHOICES = [
        (TYPE_SIMPLE, "Simple"),
        (TYPE_CUSTOMIZABLE, "Customizable"),
        (TYPE_TRADING, "Trading"),
    ]
    RELATIONS_BY_TYPE = {
        TYPE_SIMPLE: (),
        TYPE_CUSTOMIZABLE: BASE_CUSTOMIZATION_RELATIONS,
        TYPE_TRADING: TRADING_CUSTOMIZATION_RELATIONS,
    }

    name = models.CharField(max_length=255, db_index=True)
    slug = models.SlugField(max_length=255, unique=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_SIMPLE, db_index=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    offer_price = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    status = models.BooleanField(default=True, db_index=True)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="products")
    image = models.ImageField(max_length=255, null=True, blank=True)
    short_description = models.CharField(max_length=500, null=True, blank=True)
    description = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.name

    def clean(self):
        if self.offer_price is not None and self.price is not None and self.offer_price >= self.price:
            raise ValidationError({"offer_price": "Offer price must be less than price."})

    def customization_relations(self):
        return self.RELATIONS_BY_TYPE.get(self.type, ())

    @property
    def is_customizable(self):
        return bool(self.customization_relations())

    @property
    def final_price(self):
        return self.offer_price if self.offer_price is not None else self.price

    @property
    def discount_percentage(self):
        if self.offer_price is None or not self.price:
            return 0
        return float(round((self.price - self.offer_price) / self.price * 100, 2))


class ProductImage(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="images")
    image = models.ImageField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]


class CustomizationItem(models.Model):
    """
    One named sub-option (e.g. "Light" skin tone) of a customizable or
    trading product. `relation` says which gallery the option belongs to.
    """
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="customizations")
    relation = models.CharField(
        max_length=30,
        choices=[(r, r.replace("_", " ").title()) for r in CUSTOMIZATION_RELATIONS],
        db_index=True,
    )
    name = models.CharField(max_length=255)
    image = models.ImageField(max_length=255, null=True, blank=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["relation", "order", "id"]
        indexes = [
            models.Index(fields=["product", "relation"], name="customization_product_rel_idx"),
        ]

    def __str__(self):
        return f"[{self.relation}] {self.name}"


class CustomizationImage(models.Model):
    item = models.ForeignKey(CustomizationItem, on_delete=models.CASCADE, related_name="images")
    image = models.ImageField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]


# === ORDERS ===
class Order(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("processing", "Processing"),
        ("shipped", "Shipped"),
        ("delivered", "Delivered"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(db_index=True)
    phone = models.CharField(max_length=20)
    address = models.CharField(max_length=500)
    total = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending", db_index=True)
    is_paid = models.BooleanField(default=False)
    is_customized = models.BooleanField(default=False)
    customized_file = models.FileField(max_length=255, null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-id"]

    def __str__(self):
        return f"Order #{self.pk} ({self.status})"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, related_name="order_items")
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    customization_images = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]


class OrderHasPaid(models.Model):
    """Payment trace attached to an order (one row per payment attempt)."""
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("completed", "Completed"),
        ("failed", "Failed"),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    method = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending", db_index=True)
    transaction_id = models.CharField(max_length=100, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]


class PreOrder(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="preorders")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="preorders")
    product_quantity = models.PositiveIntegerField()
    final_product = models.JSONField(default=dict, blank=True)
    final_product_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-id"]


# === CONTACT / NEWSLETTER ===
class Contact(models.Model):
    name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True, default="")
    subject = models.CharField(max_length=255, blank=True, default="")
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-id"]


class Subscriber(models.Model):
    email = models.EmailField(unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.email
