"""Shared test fixtures."""

from datetime import UTC, datetime

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws
from rich.console import Console

from stacksync.models import StackEvent


@pytest.fixture
def aws_credentials(monkeypatch):
    """Set dummy AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def cfn_client(aws_credentials):
    """Create a moto-mocked CloudFormation boto3 client."""
    with mock_aws():
        yield boto3.client("cloudformation", region_name="us-east-1")


@pytest.fixture
def console():
    """A recording console wide enough to keep event lines on one row."""
    return Console(record=True, width=200)


SIMPLE_TEMPLATE = """{
    "AWSTemplateFormatVersion": "2010-09-09",
    "Resources": {
        "MyQueue": {
            "Type": "AWS::SQS::Queue",
            "Properties": {
                "QueueName": "my-test-queue"
            }
        }
    }
}"""

SIMPLE_TEMPLATE_YAML = """
AWSTemplateFormatVersion: "2010-09-09"
Resources:
  MyQueue:
    Properties:
      QueueName: my-test-queue
    Type: AWS::SQS::Queue
"""

EXPORT_TEMPLATE = """{
    "AWSTemplateFormatVersion": "2010-09-09",
    "Resources": {
        "MyBucket": {
            "Type": "AWS::S3::Bucket"
        }
    },
    "Outputs": {
        "BucketName": {
            "Value": {"Ref": "MyBucket"},
            "Export": {"Name": "shared-bucket-name"}
        }
    }
}"""

PARAMETER_TEMPLATE = """
Parameters:
  Env:
    Type: String
  Version:
    Type: String
Resources:
  MyTopic:
    Type: AWS::SNS::Topic
    Properties:
      TopicName: !Sub "${Env}-topic"
"""


def client_error(code, message, operation="DescribeStacks"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def make_event(event_id, logical_id, status, timestamp=None, reason="", resource_type=None):
    return StackEvent(
        event_id=event_id,
        timestamp=timestamp or datetime.now(UTC),
        logical_id=logical_id,
        resource_type=resource_type or "AWS::CloudFormation::Stack",
        status=status,
        reason=reason,
    )
