from django.urls import include, path

from .category import CategoryDetailAPIView, CategoryListCreateAPIView
from .contacts import ContactDetailAPIView, ContactListAPIView, ContactMailAPIView, SubscriberAPIView
from .orders import (
    AdminOrderDetailAPIView,
    AdminOrderListAPIView,
    CustomerOrderDetailAPIView,
    CustomerOrderListCreateAPIView,
)
from .payments import PaymentDetailAPIView, PaymentListCreateAPIView
from .preorders import PreOrderDetailAPIView, PreOrderListCreateAPIView
from .product import (
    ProductDetailAPIView,
    ProductListCreateAPIView,
    ShopDetailAPIView,
    ShopListAPIView,
)

urlpatterns = [
    path("", include("storefront.auth_urls")),

    # catalog
    path("categories", CategoryListCreateAPIView.as_view(), name="categories"),
    path("categories/<int:pk>", CategoryDetailAPIView.as_view(), name="category-detail"),
    path("products", ProductListCreateAPIView.as_view(), name="products"),
    path("products/<int:pk>", ProductDetailAPIView.as_view(), name="product-detail"),
    path("shop", ShopListAPIView.as_view(), name="shop"),
    path("shop/<slug:slug>", ShopDetailAPIView.as_view(), name="shop-detail"),

    # orders
    path("orders", AdminOrderListAPIView.as_view(), name="orders"),
    path("orders/<int:pk>", AdminOrderDetailAPIView.as_view(), name="order-detail"),
    path("customer-orders", CustomerOrderListCreateAPIView.as_view(), name="customer-orders"),
    path("customer-orders/<int:pk>", CustomerOrderDetailAPIView.as_view(), name="customer-order-detail"),
    path("payments", PaymentListCreateAPIView.as_view(), name="payments"),
    path("payments/<int:pk>", PaymentDetailAPIView.as_view(), name="payment-detail"),
    path("preorders", PreOrderListCreateAPIView.as_view(), name="preorders"),
    path("preorders/<int:pk>", PreOrderDetailAPIView.as_view(), name="preorder-detail"),

    # contact / newsletter
    path("contact", ContactMailAPIView.as_view(), name="contact"),
    path("contacts", ContactListAPIView.as_view(), name="contacts"),
    path("contacts/<int:pk>", ContactDetailAPIView.as_view(), name="contact-detail"),
    path("subscribers", SubscriberAPIView.as_view(), name="subscribers"),
]
