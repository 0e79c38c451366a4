import logging
import os
from typing import Optional, Union
from uuid import uuid4

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from werkzeug.utils import secure_filename

from .config import Settings
from .errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
LOCAL_UPLOAD_PREFIX = "/uploads/"
CLOUDINARY_URL_ENV = "CLOUDINARY_URL"


def allowed_image_extension(filename: str) -> bool:
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    return bool(extension) and extension in ALLOWED_IMAGE_EXTENSIONS


def configure_cloudinary(settings: Settings) -> None:
    """Load Cloudinary credentials into the SDK's global configuration, once at startup."""
    if settings.cloudinary_url:
        # The SDK parses CLOUDINARY_URL from the environment when it resets.
        os.environ[CLOUDINARY_URL_ENV] = settings.cloudinary_url
        cloudinary.reset_config()
    else:
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )
    cloudinary.config(secure=True)


class MediaStore:
    """Stores product images on Cloudinary when configured, on local disk otherwise."""

    def __init__(self, settings: Settings):
        self.settings = settings
        if self.remote:
            configure_cloudinary(settings)

    @property
    def remote(self) -> bool:
        return self.settings.cloudinary_configured

    def save(self, upload) -> str:
        """Validate an uploaded file and return the public URL it was stored under."""
        original_filename = secure_filename(getattr(upload, "filename", "") or "")
        if not original_filename:
            raise ValidationError("Please choose a valid file name.")

        mimetype = getattr(upload, "mimetype", "") or ""
        if not mimetype.startswith("image/"):
            raise ValidationError("Only image files are allowed!")
        if not allowed_image_extension(original_filename):
            raise ValidationError(
                "Unsupported image format. Upload PNG, JPG, JPEG, GIF, or WEBP files."
            )

        content = upload.read()
        if len(content) > self.settings.max_image_bytes:
            raise ValidationError("Image exceeds the 5 MB upload limit.")

        return self.store_bytes(original_filename, content)

    def store_bytes(self, filename: str, content: bytes) -> str:
        if self.remote:
            return self.upload_to_cloudinary(content, label=filename)
        return self.save_locally(filename, content)

    def save_locally(self, filename: str, content: bytes) -> str:
        extension = os.path.splitext(filename)[1].lower()
        unique_filename = f"{uuid4().hex}{extension}"
        destination = os.path.join(self.settings.uploads_dir, unique_filename)
        try:
            os.makedirs(self.settings.uploads_dir, exist_ok=True)
            with open(destination, "wb") as handle:
                handle.write(content)
        except OSError as exc:
            raise UpstreamError(f"Could not store {filename}: {exc}") from exc
        return LOCAL_UPLOAD_PREFIX + unique_filename

    def upload_to_cloudinary(self, source: Union[bytes, str], label: str = "image") -> str:
        """Upload raw bytes or a local file path and return the ``secure_url``."""
        try:
            result = cloudinary.uploader.upload(
                source, folder=self.settings.cloudinary_folder, resource_type="image"
            )
        except cloudinary.exceptions.Error as exc:
            raise UpstreamError(f"Cloudinary upload failed for {label}: {exc}") from exc

        url: Optional[str] = (result or {}).get("secure_url")
        if not url:
            raise UpstreamError(f"Cloudinary returned no URL for {label}")
        return url

    def local_path(self, url: str) -> Optional[str]:
        """Filesystem path of an image stored by ``save_locally``, if any."""
        if not url or not url.lstrip("/").startswith(LOCAL_UPLOAD_PREFIX.strip("/") + "/"):
            return None
        filename = os.path.basename(url)
        return os.path.join(self.settings.uploads_dir, filename) if filename else None

    def discard(self, urls) -> None:
        """Remove locally stored images; remote URLs are left alone."""
        for url in urls or []:
            path = self.local_path(str(url))
            if not path:
                continue
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove upload %s: %s", path, exc)
