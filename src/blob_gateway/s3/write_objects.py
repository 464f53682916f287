"""S3 writes made by the mirror: one world-readable object per stored payload."""

from typing import Optional

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

PUBLIC_READ_ACL = "public-read"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def put_public_object(
    s3_client: "S3Client",
    bucket_name: str,
    object_key: str,
    payload: bytes,
    content_type: Optional[str] = None,
) -> str:
    """
    Write `payload` to `bucket_name/object_key` with a public-read ACL.

    :param s3_client: boto3 S3 client bound to the mirror's region and endpoint.
    :param bucket_name: bucket of the payload's content category.
    :param object_key: storage key assigned on ingest, reused verbatim.
    :param payload: the whole object.
    :param content_type: sniffed MIME type, stored as the object's Content-Type.
    :return: the ETag S3 reports for the new object, without quotes.
    """
    response = s3_client.put_object(
        Bucket=bucket_name,
        Key=object_key,
        Body=payload,
        ContentType=content_type or DEFAULT_CONTENT_TYPE,
        ACL=PUBLIC_READ_ACL,
    )
    return response.get("ETag", "").strip('"')
