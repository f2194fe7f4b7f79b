from __future__ import annotations

import pytest

from conftest import make_settings
from portfolio_ops.storage.layout import (
    StorageLayout,
    base_name,
    download_url,
    first_download_token,
    normalize_editable_name,
    safe_extension,
    sanitize_download_name,
    stored_name,
)


def test_prefixes_and_collections() -> None:
    layout = StorageLayout(make_settings())
    assert layout.root_prefix("u1") == "users/u1/portfolio-images/"
    assert layout.prefix("u1", "n8n") == "users/u1/portfolio-images/n8n/"
    assert len(layout.downloadable_prefixes("u1")) == 4

    assert layout.collection_for("users/u1/portfolio-images/gallery/a.png") == "gallery"
    assert layout.collection_for("users/u1/portfolio-images/n8n/a.jpg") == "n8n"
    assert layout.collection_for("users/u1/portfolio-images/optimized/a.avif") == "optimized"
    assert layout.collection_for("users/u1/portfolio-images/originals/a.png") == "original"
    assert layout.collection_for("users/u1/elsewhere/a.png") == "unknown"


def test_folder_names_follow_settings() -> None:
    layout = StorageLayout(make_settings(image_root_folder="media", image_gallery_folder="pics"))
    assert layout.prefix("u1", layout.gallery) == "users/u1/media/pics/"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("My Photo (1).PNG", "My-Photo-1"),
        ("--weird__name--.jpeg", "weird__name"),
        ("   ", "image"),
        ("!!!.png", "image"),
    ],
)
def test_base_name(raw: str, expected: str) -> None:
    assert base_name(raw) == expected


def test_stored_name_and_extension() -> None:
    assert safe_extension("a.JP-G") == "jpg"
    assert safe_extension("noext") == "bin"
    assert stored_name(1700000000000, "My Photo.PNG") == "1700000000000-My-Photo.png"
    assert stored_name(1, "x.png", "webp") == "1-x.webp"


def test_sanitize_download_name() -> None:
    assert sanitize_download_name('a/b:c*?"d.png', "fallback") == "a-b-c---d.png"
    assert sanitize_download_name("  two   spaces.png ", "f") == "two spaces.png"
    assert sanitize_download_name(None, "fallback.png") == "fallback.png"
    assert len(sanitize_download_name("n" * 300, "f")) == 160


def test_normalize_editable_name() -> None:
    assert normalize_editable_name("  Sunset  ") == "Sunset"
    with pytest.raises(ValueError):
        normalize_editable_name("   ")
    with pytest.raises(ValueError):
        normalize_editable_name("x" * 121)


def test_download_tokens_and_urls() -> None:
    assert first_download_token({"firebaseStorageDownloadTokens": " t1 ,t2"}) == "t1"
    assert first_download_token({}) is None
    assert first_download_token(None) is None
    assert download_url("b", "users/u 1/a.png", "tok") == (
        "https://firebasestorage.googleapis.com/v0/b/b/o/users%2Fu%201%2Fa.png"
        "?alt=media&token=tok"
    )
