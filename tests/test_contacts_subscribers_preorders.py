from decimal import Decimal

import pytest

from storefront.models import Contact, PreOrder, Product, Subscriber

pytestmark = pytest.mark.django_db


@pytest.fixture
def product(category):
    return Product.objects.create(name="Card", slug="card", price=Decimal("20.00"), category=category)


# -----------------------
# Contact
# -----------------------

def test_contact_form_is_stored_and_mailed(api_client, mailoutbox, settings):
    settings.STOREFRONT = {**settings.STOREFRONT, "CONTACT_RECIPIENT": "shop@example.com"}

    res = api_client.post("/api/contact", {
        "name": "Visitor", "email": "visitor@example.com", "subject": "Hello", "message": "Line one\nLine two",
    }, format="json")

    assert res.status_code == 201
    assert res.json()["data"]["mailed"] is True
    assert Contact.objects.count() == 1
    assert mailoutbox[0].to == ["shop@example.com"]
    assert mailoutbox[0].subject == "Hello"
    assert "Line one" in mailoutbox[0].body


def test_contact_stored_even_when_mail_fails(api_client, monkeypatch):
    def broken_send_mail(*args, **kwargs):
        raise OSError("smtp down")

    monkeypatch.setattr("storefront.contacts.send_mail", broken_send_mail)

    res = api_client.post("/api/contact", {"name": "V", "email": "v@example.com", "message": "Hi"}, format="json")

    assert res.status_code == 201
    assert res.json()["data"]["mailed"] is False
    assert Contact.objects.count() == 1


def test_contact_validation(api_client):
    res = api_client.post("/api/contact", {"name": "V", "email": "not-an-email"}, format="json")
    assert res.status_code == 422
    assert {"email", "message"} <= set(res.json()["errors"])


def test_contacts_admin(staff_client, user_client):
    contact = Contact.objects.create(name="V", email="v@example.com", message="Hi")

    assert user_client.get("/api/contacts").status_code == 403
    res = staff_client.get("/api/contacts")
    assert [c["id"] for c in res.json()["data"]["data"]] == [contact.id]

    assert staff_client.delete(f"/api/contacts/{contact.id}").status_code == 200
    assert not Contact.objects.exists()


def test_contacts_are_created_only_through_the_form(staff_client):
    res = staff_client.post("/api/contacts", {"name": "V", "email": "v@example.com", "message": "Hi"}, format="json")
    assert res.status_code == 405
    assert not Contact.objects.exists()


# -----------------------
# Subscribers
# -----------------------

def test_subscribe_is_public_and_unique(api_client):
    assert api_client.post("/api/subscribers", {"email": "fan@example.com"}, format="json").status_code == 201
    res = api_client.post("/api/subscribers", {"email": "fan@example.com"}, format="json")
    assert res.status_code == 422
    assert Subscriber.objects.count() == 1


def test_subscribe_ignores_email_case(api_client):
    assert api_client.post("/api/subscribers", {"email": "Fan@Example.com"}, format="json").status_code == 201
    res = api_client.post("/api/subscribers", {"email": "FAN@example.COM"}, format="json")

    assert res.status_code == 422
    assert "email" in res.json()["errors"]
    assert list(Subscriber.objects.values_list("email", flat=True)) == ["fan@example.com"]


def test_subscriber_listing_includes_users(staff_client, user_client, api_client, user):
    Subscriber.objects.create(email="fan@example.com")

    assert api_client.get("/api/subscribers").status_code == 401
    assert user_client.get("/api/subscribers").status_code == 403

    data = staff_client.get("/api/subscribers").json()["data"]
    assert [s["email"] for s in data["subscribers"]] == ["fan@example.com"]
    assert user.email in [u["email"] for u in data["users"]]


# -----------------------
# Pre-orders
# -----------------------

def test_preorder_crud(user_client, product):
    res = user_client.post("/api/preorders", {
        "product_id": product.id,
        "product_quantity": 2,
        "final_product": {"skin_tones": "Light"},
        "final_product_price": "35.00",
    }, format="json")
    assert res.status_code == 201
    preorder = res.json()["data"]
    assert preorder["final_product"] == {"skin_tones": "Light"}

    res = user_client.patch(f"/api/preorders/{preorder['id']}", {"product_quantity": 3}, format="json")
    assert res.status_code == 200
    assert res.json()["data"]["product_quantity"] == 3

    assert [p["id"] for p in user_client.get("/api/preorders").json()["data"]] == [preorder["id"]]
    assert user_client.delete(f"/api/preorders/{preorder['id']}").status_code == 200
    assert not PreOrder.objects.exists()


def test_preorders_are_private(user_client, staff, product):
    other = PreOrder.objects.create(user=staff, product=product, product_quantity=1)
    assert user_client.get(f"/api/preorders/{other.id}").status_code == 404
    assert user_client.get("/api/preorders").json()["data"] == []


def test_preorder_quantity_must_be_positive(user_client, product):
    res = user_client.post("/api/preorders", {"product_id": product.id, "product_quantity": 0}, format="json")
    assert res.status_code == 422
