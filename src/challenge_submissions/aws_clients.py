import boto3

from .config import Settings


def _kw(settings: Settings):
    k = {"region_name": settings.aws_region}
    if settings.aws_endpoint_url:  # e.g., http://localhost:4566 for LocalStack
        k["endpoint_url"] = settings.aws_endpoint_url
    return k


def s3_client(settings: Settings):
    return boto3.client("s3", **_kw(settings))


def dynamodb_resource(settings: Settings):
    return boto3.resource("dynamodb", **_kw(settings))
