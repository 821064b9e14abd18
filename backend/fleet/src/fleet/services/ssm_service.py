"""SSM Parameter Store access for payment-provider secrets."""

import logging
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""


class SSMService:
    """Reads SecureString parameters, caching them per process.

    Usage:
        ssm = get_ssm_service()
        key = ssm.get_parameter(stripe_parameter_name("dev", "secret_key"))
    """

    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm")

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a decrypted parameter value.

        Raises:
            SSMServiceError: If the parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {name}") from e
            raise SSMServiceError(f"Failed to retrieve SSM parameter {name}: {error_code}") from e

        value: str = response["Parameter"]["Value"]
        self._cache[name] = value
        return value

    def clear_cache(self) -> None:
        """Forget all cached parameters."""
        self._cache.clear()


def stripe_parameter_name(environment: str, key: str) -> str:
    """SSM path of a Stripe secret, e.g. /fleet/dev/stripe/secret_key."""
    return f"/fleet/{environment}/stripe/{key}"


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance."""
    return SSMService()
