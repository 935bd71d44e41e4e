"""
Media CDN access (Cloudinary)

Uploads go straight to Cloudinary's REST API with an unsigned upload preset;
deletes are signed with the API secret. Only the returned `secure_url` is kept
in the document store, as a plain string field.
"""
import hashlib
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from pydantic import BaseModel, ConfigDict

from errors import UploadError
from validation import validate_upload

logger = logging.getLogger(__name__)

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", "")
UPLOAD_TIMEOUT = 60

RESPONSIVE_WIDTHS = {"xs": 320, "sm": 640, "md": 768, "lg": 1024, "xl": 1280, "2xl": 1536}


@dataclass
class MediaFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class UploadResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    public_id: str
    secure_url: str
    url: Optional[str] = None
    version: Optional[int] = None
    signature: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    resource_type: Optional[str] = None
    bytes: Optional[int] = None


def _transformation(params) -> str:
    parts = [f"{prefix}_{value}" for prefix, value in params if value]
    return ",".join(parts) + "/" if parts else ""


def transformed_image_url(
    cloud_name: str,
    public_id: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    crop: str = "fill",
    quality="auto",
    format: str = "auto",
    gravity: str = "auto",
) -> str:
    t = _transformation([("w", width), ("h", height), ("c", crop), ("q", quality), ("f", format), ("g", gravity)])
    return f"https://res.cloudinary.com/{cloud_name}/image/upload/{t}{public_id}"


def transformed_video_url(
    cloud_name: str,
    public_id: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    quality="auto",
    format: str = "auto",
) -> str:
    t = _transformation([("w", width), ("h", height), ("q", quality), ("f", format)])
    return f"https://res.cloudinary.com/{cloud_name}/video/upload/{t}{public_id}"


def sign_params(params: Dict[str, object], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryClient:
    def __init__(
        self,
        cloud_name: str = CLOUDINARY_CLOUD_NAME,
        api_key: str = CLOUDINARY_API_KEY,
        api_secret: str = CLOUDINARY_API_SECRET,
        upload_preset: str = CLOUDINARY_UPLOAD_PRESET,
        session: Optional[requests.Session] = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.upload_preset = upload_preset
        self.http = session or requests.Session()

    @property
    def base_url(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.cloud_name}"

    def _upload(self, file: MediaFile, resource_type: str, folder: Optional[str]) -> UploadResult:
        data = {"upload_preset": self.upload_preset}
        if folder:
            data["folder"] = folder
        resp = self.http.post(
            f"{self.base_url}/{resource_type}/upload",
            data=data,
            files={"file": (file.filename, file.data, file.content_type)},
            timeout=UPLOAD_TIMEOUT,
        )
        if not resp.ok:
            logger.error("Error uploading %s to Cloudinary: status %s", resource_type, resp.status_code)
            raise UploadError(f"Upload failed with status: {resp.status_code}", resp.status_code)
        return UploadResult.model_validate(resp.json())

    def upload_image(self, file: MediaFile, folder: Optional[str] = None) -> UploadResult:
        return self._upload(file, "image", folder)

    def upload_video(self, file: MediaFile, folder: Optional[str] = None) -> UploadResult:
        return self._upload(file, "video", folder)

    def delete_resource(self, public_id: str, resource_type: str = "image"):
        timestamp = int(time.time())
        signature = sign_params({"public_id": public_id, "timestamp": timestamp}, self.api_secret)
        resp = self.http.post(
            f"{self.base_url}/{resource_type}/destroy",
            data={
                "public_id": public_id,
                "signature": signature,
                "api_key": self.api_key,
                "timestamp": str(timestamp),
            },
            timeout=UPLOAD_TIMEOUT,
        )
        if not resp.ok:
            logger.error("Error deleting %s from Cloudinary: status %s", public_id, resp.status_code)
            raise UploadError(f"Delete failed with status: {resp.status_code}", resp.status_code)

    # URL helpers

    def image_url(self, public_id: str, **transformations) -> str:
        return transformed_image_url(self.cloud_name, public_id, **transformations)

    def video_url(self, public_id: str, **transformations) -> str:
        return transformed_video_url(self.cloud_name, public_id, **transformations)

    def thumbnail(self, public_id: str, size: int = 300) -> str:
        return self.image_url(public_id, width=size, height=size)

    def hero_image(self, public_id: str, width: int = 1920, height: int = 1080) -> str:
        return self.image_url(public_id, width=width, height=height)

    def responsive_urls(self, public_id: str) -> Dict[str, str]:
        return {name: self.image_url(public_id, width=w) for name, w in RESPONSIVE_WIDTHS.items()}


class MediaUploader:
    """Upload state for an admin form: `uploading` plus the last `upload_error`."""

    def __init__(self, client: CloudinaryClient):
        self.client = client
        self.uploading = False
        self.upload_error: Optional[str] = None

    def _upload(self, file: MediaFile, kind: str, folder: Optional[str]) -> Optional[UploadResult]:
        self.uploading = True
        self.upload_error = None
        try:
            problem = validate_upload(file.content_type, file.size, kind)
            if problem:
                raise UploadError(problem)
            if kind == "video":
                return self.client.upload_video(file, folder)
            return self.client.upload_image(file, folder)
        except UploadError as e:
            self.upload_error = e.message
            return None
        except Exception as e:
            logger.error("Error uploading %s: %s", kind, e)
            self.upload_error = f"Failed to upload {kind}"
            return None
        finally:
            self.uploading = False

    def upload_image(self, file: MediaFile, folder: Optional[str] = None) -> Optional[UploadResult]:
        return self._upload(file, "image", folder)

    def upload_video(self, file: MediaFile, folder: Optional[str] = None) -> Optional[UploadResult]:
        return self._upload(file, "video", folder)

    def delete_resource(self, public_id: str, resource_type: str = "image") -> bool:
        self.upload_error = None
        try:
            self.client.delete_resource(public_id, resource_type)
            return True
        except UploadError as e:
            self.upload_error = e.message
            return False
        except Exception as e:
            logger.error("Error deleting %s: %s", public_id, e)
            self.upload_error = "Failed to delete resource"
            return False

    def clear_error(self):
        self.upload_error = None
