import base64
from io import BytesIO

import pytest
from PIL import Image
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from storefront.models import Category


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    return tmp_path


@pytest.fixture
def make_image():
    """Return raw base64 of a tiny image in the given Pillow format."""
    def _make(fmt="PNG", color="red", size=(4, 4)):
        buf = BytesIO()
        Image.new("RGB", size, color).save(buf, format=fmt)
        return base64.b64encode(buf.getvalue()).decode()
    return _make


@pytest.fixture
def png_b64(make_image):
    return make_image()


@pytest.fixture
def png_data_url(png_b64):
    return f"data:image/png;base64,{png_b64}"


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="buyer@example.com",
        email="buyer@example.com",
        password="secret-pass",
        name="Buyer",
    )


@pytest.fixture
def staff(db):
    return get_user_model().objects.create_user(
        username="admin@example.com",
        email="admin@example.com",
        password="secret-pass",
        name="Admin",
        is_staff=True,
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user_client(user):
    client = APIClient()
    client.force_authenticate(user)
    return client


@pytest.fixture
def staff_client(staff):
    client = APIClient()
    client.force_authenticate(staff)
    return client


@pytest.fixture
def category(db):
    return Category.objects.create(name="Cards", slug="cards")
