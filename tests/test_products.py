from decimal import Decimal

import pytest
from django.core.files.storage import default_storage

from storefront.models import CustomizationImage, CustomizationItem, Product, ProductImage

pytestmark = pytest.mark.django_db


def product_payload(category, **overrides):
    data = {
        "name": "Card",
        "type": "customizable",
        "price": 20,
        "status": True,
        "category_id": category.id,
    }
    data.update(overrides)
    return data


def stored_files(media_root):
    return [p for p in media_root.rglob("*") if p.is_file()]


def create(client, payload):
    res = client.post("/api/products", payload, format="json")
    assert res.status_code == 201, res.json()
    return res.json()["data"]


# -----------------------
# Create
# -----------------------

def test_offer_price_not_below_price_is_rejected(staff_client, category):
    res = staff_client.post(
        "/api/products",
        {"name": "Mug", "type": "simple", "price": 10, "offer_price": 12, "status": True, "category_id": category.id},
        format="json",
    )

    assert res.status_code == 422
    body = res.json()
    assert body["success"] is False
    assert "offer_price" in body["errors"]
    assert Product.objects.count() == 0


def test_create_customizable_with_skin_tone(staff_client, category, png_data_url):
    data = create(staff_client, product_payload(
        category, skin_tones=[{"name": "Light", "images": [png_data_url]}],
    ))

    skin_tones = data["customizations"]["skin_tones"]
    assert len(skin_tones) == 1
    assert skin_tones[0]["name"] == "Light"
    assert len(skin_tones[0]["images"]) == 1
    assert skin_tones[0]["images"][0]["url"].startswith(
        "http://testserver/storage/products/customizations/skin_tones/"
    )
    assert set(data["customizations"]) == set(Product.RELATIONS_BY_TYPE["customizable"])


def test_create_full_product_shape(staff_client, category, png_data_url, png_b64):
    data = create(staff_client, product_payload(
        category,
        type="simple",
        price="50.00",
        offer_price="40.00",
        short_description="Short",
        image=png_data_url,
        images=[png_b64, png_data_url],
    ))

    assert data["slug"] == "card"
    assert data["final_price"] == "40.00"
    assert data["discount_percentage"] == 20.0
    assert data["image"].startswith("http://testserver/storage/products/main/")
    assert [g["alt"] for g in data["gallery_images"]] == ["Card", "Card"]
    assert data["category"] == {"id": category.id, "name": "Cards", "slug": "cards"}
    assert "customizations" not in data


def test_type_is_case_insensitive(staff_client, category):
    data = create(staff_client, product_payload(category, type="Customizable"))
    assert data["type"] == "customizable"


def test_unknown_type_is_rejected(staff_client, category):
    res = staff_client.post("/api/products", product_payload(category, type="bundle"), format="json")
    assert res.status_code == 422
    assert "type" in res.json()["errors"]


def test_simple_product_ignores_customizations(staff_client, category, png_data_url):
    data = create(staff_client, product_payload(
        category, type="simple", skin_tones=[{"name": "Light", "images": [png_data_url]}],
    ))
    assert CustomizationItem.objects.filter(product_id=data["id"]).count() == 0


def test_trading_fronts_only_on_trading_products(staff_client, category, png_data_url):
    option = [{"name": "Gold", "image": png_data_url}]

    trading = create(staff_client, product_payload(category, name="Trading", type="trading", trading_fronts=option))
    custom = create(staff_client, product_payload(category, name="Custom", trading_fronts=option))

    assert len(trading["customizations"]["trading_fronts"]) == 1
    assert trading["customizations"]["trading_fronts"][0]["image"].startswith("http://testserver/storage/")
    assert "trading_fronts" not in custom["customizations"]
    assert not CustomizationItem.objects.filter(product_id=custom["id"]).exists()


def test_bare_string_option_gets_default_name(staff_client, category, png_data_url):
    data = create(staff_client, product_payload(category, hairs=[png_data_url, png_data_url]))

    hairs = data["customizations"]["hairs"]
    assert [h["name"] for h in hairs] == ["Hairs 1", "Hairs 2"]
    assert all(h["image"] for h in hairs)


def test_option_without_name_is_rejected(staff_client, category, png_data_url):
    res = staff_client.post(
        "/api/products", product_payload(category, eyes=[{"images": [png_data_url]}]), format="json",
    )
    assert res.status_code == 422
    assert "eyes" in res.json()["errors"]


def test_duplicate_names_get_unique_slugs(staff_client, category):
    first = create(staff_client, product_payload(category, name="Mug", type="simple"))
    second = create(staff_client, product_payload(category, name="Mug", type="simple"))

    assert first["slug"] == "mug"
    assert second["slug"].startswith("mug-")
    assert second["slug"] != first["slug"]


def test_taken_slug_is_rejected(staff_client, category):
    create(staff_client, product_payload(category, name="Mug", type="simple"))
    res = staff_client.post("/api/products", product_payload(category, slug="mug"), format="json")
    assert res.status_code == 422
    assert "slug" in res.json()["errors"]


def test_bad_image_rolls_back_rows_and_files(staff_client, category, png_data_url, media_root):
    res = staff_client.post(
        "/api/products",
        product_payload(category, image=png_data_url, images=[png_data_url, "@@@"]),
        format="json",
    )

    assert res.status_code == 422
    assert "images.1" in res.json()["errors"]
    assert Product.objects.count() == 0
    assert ProductImage.objects.count() == 0
    assert stored_files(media_root) == []


def test_customer_cannot_create(user_client, category):
    res = user_client.post("/api/products", product_payload(category), format="json")
    assert res.status_code == 403
    assert res.json()["success"] is False


def test_anonymous_cannot_list(api_client):
    res = api_client.get("/api/products")
    assert res.status_code == 401
    assert res.json()["success"] is False


# -----------------------
# Update / delete
# -----------------------

def test_update_replaces_only_present_relations(
    staff_client, category, png_data_url, django_capture_on_commit_callbacks,
):
    product = create(staff_client, product_payload(
        category,
        skin_tones=[{"name": "Light", "images": [png_data_url]}, {"name": "Tan", "images": [png_data_url]}],
        hairs=[{"name": "Curly", "images": [png_data_url]}],
    ))
    old_paths = list(
        CustomizationImage.objects.filter(item__relation="skin_tones").values_list("image", flat=True)
    )

    with django_capture_on_commit_callbacks(execute=True):
        res = staff_client.patch(
            f"/api/products/{product['id']}",
            {"skin_tones": [{"name": "Dark", "images": [png_data_url]}]},
            format="json",
        )

    assert res.status_code == 200
    customizations = res.json()["data"]["customizations"]
    assert [s["name"] for s in customizations["skin_tones"]] == ["Dark"]
    assert [h["name"] for h in customizations["hairs"]] == ["Curly"]
    assert all(not default_storage.exists(p) for p in old_paths)


def test_new_main_image_replaces_old_file(
    staff_client, category, png_data_url, make_image, django_capture_on_commit_callbacks,
):
    product = create(staff_client, product_payload(category, type="simple", image=png_data_url))
    old_path = Product.objects.get(pk=product["id"]).image.name

    with django_capture_on_commit_callbacks(execute=True):
        res = staff_client.put(
            f"/api/products/{product['id']}",
            product_payload(category, type="simple", name="Card v2", image=make_image(color="blue")),
            format="json",
        )

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["name"] == "Card v2"
    assert data["slug"] == "card-v2"
    assert not default_storage.exists(old_path)
    assert default_storage.exists(Product.objects.get(pk=product["id"]).image.name)


def test_changing_type_to_simple_drops_customizations(staff_client, category, png_data_url):
    product = create(staff_client, product_payload(category, noses=[{"name": "Small", "image": png_data_url}]))

    res = staff_client.patch(f"/api/products/{product['id']}", {"type": "simple"}, format="json")

    assert res.status_code == 200
    assert "customizations" not in res.json()["data"]
    assert not CustomizationItem.objects.filter(product_id=product["id"]).exists()


def test_update_offer_price_checked_against_stored_price(staff_client, category):
    product = create(staff_client, product_payload(category, type="simple", price=10))
    res = staff_client.patch(f"/api/products/{product['id']}", {"offer_price": 15}, format="json")
    assert res.status_code == 422
    assert "offer_price" in res.json()["errors"]


def test_update_price_checked_against_stored_offer_price(staff_client, category):
    product = create(staff_client, product_payload(category, type="simple", price=20, offer_price=15))

    res = staff_client.patch(f"/api/products/{product['id']}", {"price": 10}, format="json")
    assert res.status_code == 422
    assert "offer_price" in res.json()["errors"]

    res = staff_client.put(f"/api/products/{product['id']}", product_payload(category, type="simple", price=15), format="json")
    assert res.status_code == 422

    row = Product.objects.get(pk=product["id"])
    assert (row.price, row.offer_price) == (Decimal("20.00"), Decimal("15.00"))


def test_put_without_slug_keeps_custom_slug(staff_client, category):
    product = create(staff_client, product_payload(category, type="simple", slug="limited-card"))

    res = staff_client.put(f"/api/products/{product['id']}", product_payload(category, type="simple", price=25), format="json")

    assert res.status_code == 200
    assert res.json()["data"]["slug"] == "limited-card"


def test_delete_removes_rows_and_files(
    staff_client, category, png_data_url, media_root, django_capture_on_commit_callbacks,
):
    product = create(staff_client, product_payload(
        category,
        image=png_data_url,
        images=[png_data_url],
        crowns=[{"name": "Gold", "image": png_data_url, "images": [png_data_url]}],
    ))
    assert len(stored_files(media_root)) == 4

    with django_capture_on_commit_callbacks(execute=True):
        res = staff_client.delete(f"/api/products/{product['id']}")

    assert res.status_code == 200
    assert not Product.objects.filter(pk=product["id"]).exists()
    assert not CustomizationItem.objects.filter(product_id=product["id"]).exists()
    assert stored_files(media_root) == []


def test_customer_cannot_delete(user_client, staff_client, category):
    product = create(staff_client, product_payload(category, type="simple"))
    assert user_client.delete(f"/api/products/{product['id']}").status_code == 403
    assert Product.objects.filter(pk=product["id"]).exists()


def test_missing_product_is_404(staff_client):
    for res in (
        staff_client.get("/api/products/999"),
        staff_client.patch("/api/products/999", {"name": "x"}, format="json"),
        staff_client.delete("/api/products/999"),
    ):
        assert res.status_code == 404
        assert res.json()["message"] == "Product not found"


# -----------------------
# Listing / shop
# -----------------------

def test_list_filters_and_paginates(staff_client, category):
    for name in ("Alpha Mug", "Beta Mug", "Gamma Shirt"):
        create(staff_client, product_payload(category, name=name, type="simple"))
    create(staff_client, product_payload(category, name="Hidden Mug", type="simple", status=False))

    res = staff_client.get("/api/products", {"search": "mug", "status": "true", "per_page": 1})
    body = res.json()["data"]

    assert res.status_code == 200
    assert body["pagination"] == {
        "current_page": 1,
        "last_page": 2,
        "per_page": 1,
        "total": 2,
        "from": 1,
        "to": 1,
        "has_more_pages": True,
    }
    assert body["data"][0]["name"] == "Beta Mug"


def test_shop_lists_only_active_products(api_client, staff_client, category):
    create(staff_client, product_payload(category, name="On Sale", type="simple"))
    create(staff_client, product_payload(category, name="Draft", type="simple", status=False))

    res = api_client.get("/api/shop")

    assert res.status_code == 200
    assert [p["name"] for p in res.json()["data"]["data"]] == ["On Sale"]
    assert api_client.get("/api/shop/on-sale").status_code == 200
    assert api_client.get("/api/shop/draft").status_code == 404
