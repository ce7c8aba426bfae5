"""Tests for public folder link validation."""

import pytest

from gallerysync.errors import DomainException, EmptyField, InvalidPublicUrl, InvalidUrl
from gallerysync.utils.public_url import validate_public_url


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://disk.yandex.ru/d/abc123", "https://disk.yandex.ru/d/abc123"),
        ("  https://disk.yandex.com/d/A_b-C  ", "https://disk.yandex.com/d/A_b-C"),
        ("http://yadi.sk/d/xyz", "https://yadi.sk/d/xyz"),
        ("disk.yandex.ru/d/abc123/sub", "https://disk.yandex.ru/d/abc123/sub"),
    ],
)
def test_valid_links_are_normalized(url, expected):
    assert validate_public_url(url) == expected


@pytest.mark.parametrize("url", ["", "   ", None])
def test_blank_link(url):
    with pytest.raises(DomainException) as exc:
        validate_public_url(url)
    assert exc.value.error == EmptyField("public_folder_url")


@pytest.mark.parametrize(
    "url",
    ["https://example.com/d/abc", "https://disk.yandex.ru/i/abc", "https://yadi.sk/d/"],
)
def test_foreign_links_rejected(url):
    with pytest.raises(DomainException) as exc:
        validate_public_url(url)
    assert exc.value.error == InvalidPublicUrl(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://disk.yandex.ru/d/abc<script>alert(1)</script>",
        "https://disk.yandex.ru/d/abc?next=javascript:alert(1)",
        "https://yadi.sk/d/abc#x onerror=1",
    ],
)
def test_script_content_rejected(url):
    with pytest.raises(DomainException) as exc:
        validate_public_url(url)
    assert isinstance(exc.value.error, InvalidUrl)
