"""Unit tests for SSM Parameter Store access."""

from typing import Any, Generator

import boto3
import pytest
from moto import mock_aws

from fleet.services.ssm_service import SSMService, SSMServiceError, stripe_parameter_name


@pytest.fixture
def ssm(aws_credentials: None) -> Generator[tuple[SSMService, Any], None, None]:
    with mock_aws():
        client = boto3.client("ssm")
        service = SSMService()
        service.clear_cache()
        yield service, client
        service.clear_cache()


def test_parameter_name():
    assert stripe_parameter_name("dev", "webhook_secret") == "/fleet/dev/stripe/webhook_secret"


def test_reads_secure_string(ssm: tuple[SSMService, Any]):
    service, client = ssm
    name = stripe_parameter_name("test", "secret_key")
    client.put_parameter(Name=name, Value="sk_test_123", Type="SecureString")

    assert service.get_parameter(name) == "sk_test_123"


def test_cached_until_cleared(ssm: tuple[SSMService, Any]):
    service, client = ssm
    name = stripe_parameter_name("test", "secret_key")
    client.put_parameter(Name=name, Value="sk_old", Type="SecureString")
    service.get_parameter(name)
    client.put_parameter(Name=name, Value="sk_new", Type="SecureString", Overwrite=True)

    assert service.get_parameter(name) == "sk_old"
    assert service.get_parameter(name, use_cache=False) == "sk_new"

    service.clear_cache()
    client.put_parameter(Name=name, Value="sk_newer", Type="SecureString", Overwrite=True)
    assert service.get_parameter(name) == "sk_newer"


def test_missing_parameter(ssm: tuple[SSMService, Any]):
    service, _ = ssm

    with pytest.raises(SSMServiceError, match="not found"):
        service.get_parameter("/fleet/test/stripe/absent")
