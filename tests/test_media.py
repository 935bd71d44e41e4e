import hashlib
from unittest.mock import MagicMock

import pytest
import requests

import media
from media import CloudinaryClient, MediaFile, MediaUploader, sign_params, transformed_image_url
from validation import MAX_IMAGE_BYTES


def response(status=200, payload=None):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = payload or {}
    return resp


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(http):
    return CloudinaryClient("demo", "key-1", "secret-1", "preset-1", session=http)


def png(size=16):
    return MediaFile("cover.png", "image/png", b"\x89" * size)


def test_image_url_defaults():
    assert transformed_image_url("demo", "books/cover") == (
        "https://res.cloudinary.com/demo/image/upload/c_fill,q_auto,f_auto,g_auto/books/cover"
    )


def test_thumbnail_and_hero_sizes(client):
    assert "/w_300,h_300,c_fill," in client.thumbnail("a")
    assert "/w_1920,h_1080,c_fill," in client.hero_image("a")


def test_responsive_urls_cover_every_breakpoint(client):
    urls = client.responsive_urls("a")
    assert list(urls) == ["xs", "sm", "md", "lg", "xl", "2xl"]
    assert urls["xs"].startswith("https://res.cloudinary.com/demo/image/upload/w_320,")
    assert "w_1536," in urls["2xl"]


def test_video_url_has_no_crop(client):
    assert client.video_url("clips/a", width=640) == (
        "https://res.cloudinary.com/demo/video/upload/w_640,q_auto,f_auto/clips/a"
    )


def test_upload_posts_preset_and_folder(client, http):
    http.post.return_value = response(payload={"public_id": "books/x", "secure_url": "https://cdn/x.png"})

    result = client.upload_image(png(), folder="books")

    assert result.secure_url == "https://cdn/x.png"
    url = http.post.call_args[0][0]
    assert url == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert http.post.call_args.kwargs["data"] == {"upload_preset": "preset-1", "folder": "books"}


def test_failed_upload_reports_status(client, http):
    http.post.return_value = response(status=400)
    uploader = MediaUploader(client)

    assert uploader.upload_image(png()) is None
    assert uploader.upload_error == "Upload failed with status: 400"
    assert uploader.uploading is False


def test_wrong_type_is_rejected_before_any_request(client, http):
    uploader = MediaUploader(client)
    result = uploader.upload_video(MediaFile("talk.png", "image/png", b"x"))

    assert result is None
    assert uploader.upload_error == "Please select a valid video file"
    http.post.assert_not_called()


def test_oversized_image_is_rejected_before_any_request(client, http):
    uploader = MediaUploader(client)
    assert uploader.upload_image(png(MAX_IMAGE_BYTES + 1)) is None
    assert uploader.upload_error == "Image file size must be less than 10MB"
    http.post.assert_not_called()


def test_network_error_becomes_generic_message(client, http):
    http.post.side_effect = requests.ConnectionError("boom")
    uploader = MediaUploader(client)

    assert uploader.upload_image(png()) is None
    assert uploader.upload_error == "Failed to upload image"

    uploader.clear_error()
    assert uploader.upload_error is None


def test_sign_params_sorts_keys_and_appends_secret():
    expected = hashlib.sha1(b"public_id=a&timestamp=10secret-1").hexdigest()
    assert sign_params({"timestamp": 10, "public_id": "a"}, "secret-1") == expected


def test_delete_is_signed(client, http, monkeypatch):
    monkeypatch.setattr(media.time, "time", lambda: 1700000000)
    http.post.return_value = response()

    assert MediaUploader(client).delete_resource("books/x") is True

    data = http.post.call_args.kwargs["data"]
    assert http.post.call_args[0][0] == "https://api.cloudinary.com/v1_1/demo/image/destroy"
    assert data["api_key"] == "key-1"
    assert data["timestamp"] == "1700000000"
    assert data["signature"] == sign_params({"public_id": "books/x", "timestamp": 1700000000}, "secret-1")


def test_failed_delete_is_reported(client, http):
    http.post.return_value = response(status=404)
    uploader = MediaUploader(client)
    assert uploader.delete_resource("gone") is False
    assert uploader.upload_error == "Delete failed with status: 404"
