# common/aws.py
from functools import lru_cache

import boto3
from botocore.config import Config
from .config import AWS_REGION, DYNAMODB_ENDPOINT_URL, S3_ENDPOINT_URL

# Rendition uploads can be large; a failed upload is surfaced, not retried by the service
_BOTO_CFG = Config(
    region_name=AWS_REGION,
    retries={"max_attempts": 5, "mode": "standard"},
    connect_timeout=5,
    read_timeout=120,
)

@lru_cache(maxsize=1)
def session() -> boto3.session.Session:
    return boto3.session.Session(region_name=AWS_REGION)

@lru_cache(maxsize=1)
def s3():
    # S3_ENDPOINT_URL points at an S3-compatible store (MinIO, LocalStack) when set
    return session().client("s3", config=_BOTO_CFG, endpoint_url=S3_ENDPOINT_URL)

def media_table(name: str):
    # resource uses region from session; Config isn't accepted here
    return session().resource("dynamodb", endpoint_url=DYNAMODB_ENDPOINT_URL).Table(name)
