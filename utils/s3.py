from typing import List

from minio import Minio
from minio.error import S3Error

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from models.photo import ProfilePhoto

# ==== MinIO client ====
_endpoint = settings.AWS_S3_ENDPOINT_URL.replace("https://", "").replace("http://", "")
_s3 = Minio(
    _endpoint,
    access_key=settings.AWS_ACCESS_KEY_ID,
    secret_key=settings.AWS_SECRET_ACCESS_KEY,
    region=settings.AWS_S3_REGION,
    secure=settings.AWS_S3_ENDPOINT_URL.startswith("https://"),
)


def delete_file_from_s3(s3_key: str, bucket_name: str) -> None:
    """
    Remove an object from MinIO/S3.
    """
    try:
        _s3.remove_object(bucket_name, s3_key)
    except S3Error as e:
        raise Exception(f"S3 delete failed for {s3_key}: {e}")


def photo_url(s3_key: str) -> str:
    base = settings.AWS_S3_ENDPOINT_URL.rstrip("/") + "/" + settings.AWS_S3_BUCKET_NAME
    return f"{base}/{s3_key}"


async def list_photo_keys(user_id: int, db: AsyncSession) -> List[str]:
    result = await db.execute(
        select(ProfilePhoto.s3_key)
        .where(ProfilePhoto.user_id == user_id)
        .order_by(ProfilePhoto.position.asc(), ProfilePhoto.created_at.asc())
    )
    return [row[0] for row in result.all()]


async def build_photo_urls(user_id: int, db: AsyncSession) -> List[str]:
    """
    Public URLs of every photo attached to the user's profile, in display order.
    """
    return [photo_url(key) for key in await list_photo_keys(user_id, db)]
