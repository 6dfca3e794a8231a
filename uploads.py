"""
Image upload proxy to Cloudinary.

When CLOUDINARY_CLOUD_NAME / _API_KEY / _API_SECRET are unset the SDK
falls back to CLOUDINARY_URL from the environment.
"""
import logging
from typing import BinaryIO

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from config import get_settings
from errors import UploadFailed

logger = logging.getLogger(__name__)


def configure_cloudinary():
    settings = get_settings()
    if settings.cloudinary_cloud_name:
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )


def upload_image(image: BinaryIO) -> str:
    """Upload an image and return its public URL."""
    configure_cloudinary()
    try:
        result = cloudinary.uploader.upload(image)
    except CloudinaryError as e:
        logger.exception(f"Cloudinary upload failed: {e}")
        raise UploadFailed()
    if not result or not result.get("url"):
        logger.error("Cloudinary returned no URL")
        raise UploadFailed()
    logger.info(f"Image uploaded: {result['url']}")
    return result["url"]
