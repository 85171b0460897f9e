from __future__ import annotations

from functools import lru_cache

import boto3
from botocore.config import Config

from ..settings import settings

# Media uploads can be large; email sends are small and should fail fast.
_TIMEOUTS = {
    "s3": {"connect_timeout": 3, "read_timeout": 30},
    "sesv2": {"connect_timeout": 2, "read_timeout": 8},
}


@lru_cache(maxsize=None)
def aws_client(service: str):
    """One boto3 client per service for the process lifetime."""
    timeouts = _TIMEOUTS.get(service, {"connect_timeout": 2, "read_timeout": 12})
    config = Config(retries={"max_attempts": 4, "mode": "standard"}, **timeouts)
    return boto3.client(service, region_name=settings.aws_region, config=config)
