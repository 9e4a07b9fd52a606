
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import (
    User, Category, Product, ProductImage, CustomizationItem, CustomizationImage,
    Order, OrderItem, OrderHasPaid, PreOrder, Contact, Subscriber,
)


@admin.register(User)
class StorefrontUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (
        ("Profile", {"fields": ("name", "phone", "address")}),
    )
    list_display = ("email", "name", "is_staff", "is_active")
    ordering = ("email",)


admin.site.register(Category)
admin.site.register(Product)
admin.site.register(ProductImage)
admin.site.register(CustomizationItem)
admin.site.register(CustomizationImage)

admin.site.register(Order)
admin.site.register(OrderItem)
admin.site.register(OrderHasPaid)
admin.site.register(PreOrder)

admin.site.register(Contact)
admin.site.register(Subscriber)
