"""
AWS adapter — prove that a generated access key pair is live.

The harness never provisions anything in AWS. It only asks STS who a
key pair belongs to (``GetCallerIdentity``), and reads the static keys
of a local profile to seed the BYOC secret.
"""

from __future__ import annotations

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from aao_itest.adapters.base import AccessKeyPair, IdentityClient, IdentityResult

logger = logging.getLogger(__name__)

# One attempt: a revoked key must fail fast, not retry with backoff.
_STS_CONFIG = Config(retries={"max_attempts": 1, "mode": "standard"}, connect_timeout=10, read_timeout=20)


class StsIdentityClient(IdentityClient):
    """IdentityClient backed by boto3 STS.

    Args:
        region_name: Region for the STS endpoint.
    """

    def __init__(self, region_name: str = "us-east-1"):
        self.region_name = region_name

    def caller_identity(self, keys: AccessKeyPair) -> IdentityResult:
        logger.debug("Calling sts:GetCallerIdentity for %s", keys.masked_id)
        try:
            client = boto3.client(
                "sts",
                aws_access_key_id=keys.access_key_id,
                aws_secret_access_key=keys.secret_access_key,
                region_name=self.region_name,
                config=_STS_CONFIG,
            )
            response = client.get_caller_identity()
        except ClientError as e:
            error = e.response.get("Error", {})
            return IdentityResult(
                ok=False,
                error=f"{error.get('Code', 'ClientError')}: {error.get('Message', str(e))}",
            )
        except BotoCoreError as e:
            return IdentityResult(ok=False, error=str(e))

        return IdentityResult(
            ok=True,
            account=str(response.get("Account", "")),
            arn=str(response.get("Arn", "")),
            raw={k: v for k, v in response.items() if k != "ResponseMetadata"},
        )

    def profile_keys(self, profile: str) -> AccessKeyPair | None:
        try:
            session = boto3.Session(profile_name=profile, region_name=self.region_name)
            credentials = session.get_credentials()
        except BotoCoreError as e:
            logger.warning("Cannot load AWS profile '%s': %s", profile, e)
            return None

        if credentials is None:
            logger.warning("AWS profile '%s' has no credentials", profile)
            return None

        frozen = credentials.get_frozen_credentials()
        if not frozen.access_key or not frozen.secret_key:
            return None
        return AccessKeyPair(frozen.access_key, frozen.secret_key)
