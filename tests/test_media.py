import base64

import pytest
from django.core.files.storage import default_storage

from storefront.exceptions import MediaDecodeError, MediaTypeError
from storefront.media import (
    DOCUMENT_EXTENSIONS,
    discard_on_commit,
    media_batch,
    media_url,
    store_base64,
)


def test_data_url_is_stored_under_folder_with_declared_extension(png_data_url, media_root):
    path = store_base64(png_data_url, "products/main")

    assert path.startswith("products/main/")
    assert path.endswith(".png")
    assert (media_root / path).exists()


def test_raw_base64_extension_is_sniffed(make_image):
    path = store_base64(make_image("JPEG"), "products/gallery")
    assert path.endswith(".jpg")


def test_unknown_raw_payload_falls_back_to_default_extension():
    payload = base64.b64encode(b"not an image at all").decode()
    assert store_base64(payload, "misc").endswith(".png")


def test_spaces_are_read_back_as_plus(media_root):
    # "++++" is the base64 of b"\xfb\xef\xbe"
    path = store_base64("data:image/png;base64,    ", "misc")
    assert (media_root / path).read_bytes() == b"\xfb\xef\xbe"


def test_filenames_are_unique(png_data_url):
    assert store_base64(png_data_url, "x") != store_base64(png_data_url, "x")


@pytest.mark.parametrize("value", ["", "   ", None, "data:image/png;base64,@@@", "abc"])
def test_invalid_base64_writes_nothing(value, media_root):
    with pytest.raises(MediaDecodeError):
        store_base64(value, "products/main")
    assert not (media_root / "products").exists()


def test_disallowed_extension_is_rejected_by_default(png_b64, media_root):
    with pytest.raises(MediaTypeError):
        store_base64(f"data:image/svg+xml;base64,{png_b64}", "products/main")
    assert not (media_root / "products").exists()


def test_disallowed_extension_is_coerced_when_configured(settings, png_b64):
    settings.STOREFRONT = {**settings.STOREFRONT, "MEDIA_EXTENSION_POLICY": "coerce"}
    path = store_base64(f"data:image/bmp;base64,{png_b64}", "products/main")
    assert path.endswith(".png")


def test_documents_accept_pdf_only(png_data_url):
    pdf = "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4 test").decode()
    assert store_base64(pdf, "orders/files", allowed=DOCUMENT_EXTENSIONS, default_extension="pdf").endswith(".pdf")
    with pytest.raises(MediaTypeError):
        store_base64(png_data_url, "orders/files", allowed=DOCUMENT_EXTENSIONS, default_extension="pdf")


def test_media_batch_removes_files_when_block_fails(png_data_url):
    with pytest.raises(RuntimeError):
        with media_batch() as media:
            path = media.store(png_data_url, "products/main")
            assert default_storage.exists(path)
            raise RuntimeError("boom")
    assert not default_storage.exists(path)


def test_media_batch_tags_errors_with_field():
    with pytest.raises(MediaDecodeError) as excinfo:
        with media_batch() as media:
            media.store("@@@", "products/main", field="images.0")
    assert excinfo.value.field == "images.0"


@pytest.mark.django_db
def test_discard_waits_for_commit(png_data_url, django_capture_on_commit_callbacks):
    path = store_base64(png_data_url, "products/main")

    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        discard_on_commit(path)
    assert default_storage.exists(path)
    assert len(callbacks) == 1

    callbacks[0]()
    assert not default_storage.exists(path)


def test_media_url_is_absolute(rf):
    request = rf.get("/")
    assert media_url(request, "products/main/a.png") == "http://testserver/storage/products/main/a.png"
    assert media_url(request, None) is None
