"""SAML identity provider custom resource.

Invoked by the CloudFormation custom resource provider framework on
Create, Update and Delete. Makes the existence of one IAM SAML provider
match the request type and tolerates repeated invocations:

    Absent  --Create/Update--> Present   (metadata fetched from S3)
    Present --Delete--------> Absent

Every other (state, request) pair is a no-op. The current state is
discovered on each call by listing the account's SAML providers.

Only boto3 and the standard library are used so the directory can be
shipped as-is as a Lambda asset.
"""
import json
import logging
import os
import re
import tempfile
import typing
from dataclasses import dataclass
from enum import Enum

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

PROVIDER_NAME_PATTERN = r'^[a-zA-Z0-9\.\_\-]{1,128}$'
DEFAULT_FILENAME = 'SAML.xml'

CREATE_REQUESTS = ('Create', 'Update')
DELETE_REQUESTS = ('Delete',)

# S3 reports a missing key as 404 on HeadObject and NoSuchKey on GetObject
NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')


class ConfigError(ValueError):
    pass


class ReconcileError(Exception):
    """Raised to have the resource operation marked FAILED."""


class Outcome(str, Enum):
    CREATED = 'Created'
    ALREADY_PRESENT = 'AlreadyPresent'
    SKIPPED_MISSING_SOURCE = 'SkippedMissingSource'
    DELETED = 'Deleted'
    ALREADY_ABSENT = 'AlreadyAbsent'
    UNSUPPORTED = 'Unsupported'
    FAILED = 'Failed'


@dataclass(frozen=True)
class Result:
    outcome: Outcome
    reason: str = ''

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.FAILED

    @property
    def changed(self) -> bool:
        return self.outcome in (Outcome.CREATED, Outcome.DELETED)


def provider_arn(account_id: str, name: str, partition: str = 'aws') -> str:
    return 'arn:{}:iam::{}:saml-provider/{}'.format(partition, account_id, name)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class SamlProviderConfig:
    provider_name: str
    provider_arn: str
    bucket_name: str
    filename: str = DEFAULT_FILENAME
    fail_on_missing_metadata: bool = False

    KEYS = ('saml_provider_name', 'saml_provider_arn', 'saml_bucket_name', 'saml_filename', 'fail_on_missing_metadata')

    def __post_init__(self):
        if not self.provider_name or not re.match(PROVIDER_NAME_PATTERN, self.provider_name):
            raise ConfigError("Invalid SAML provider name: {!r}".format(self.provider_name))
        if not self.provider_arn:
            raise ConfigError("Missing saml_provider_arn")
        if not self.provider_arn.endswith(':saml-provider/{}'.format(self.provider_name)):
            raise ConfigError("SAML provider ARN {} does not match name {}".format(
                self.provider_arn, self.provider_name))
        if not self.bucket_name:
            raise ConfigError("Missing saml_bucket_name")

    @classmethod
    def from_mapping(cls, values: typing.Mapping[str, typing.Any]) -> 'SamlProviderConfig':
        return cls(
            provider_name=values.get('saml_provider_name', ''),
            provider_arn=values.get('saml_provider_arn', ''),
            bucket_name=values.get('saml_bucket_name', ''),
            filename=values.get('saml_filename') or DEFAULT_FILENAME,
            fail_on_missing_metadata=_as_bool(values.get('fail_on_missing_metadata', False)),
        )

    @classmethod
    def from_env(cls, environ: typing.Mapping[str, str] = None) -> 'SamlProviderConfig':
        if environ is None:
            environ = os.environ
        return cls.from_mapping(environ)

    @classmethod
    def from_event(cls, event: dict, environ: typing.Mapping[str, str] = None) -> 'SamlProviderConfig':
        """Resource properties win over the function's environment."""
        if environ is None:
            environ = os.environ
        properties = event.get('ResourceProperties') or {}
        values = {}
        for key in cls.KEYS:
            if properties.get(key) not in (None, ''):
                values[key] = properties[key]
            elif key in environ:
                values[key] = environ[key]
        return cls.from_mapping(values)


def list_provider_arns(iam) -> typing.List[str]:
    return [p['Arn'] for p in iam.list_saml_providers()['SAMLProviderList']]


def provider_exists(iam, arn: str) -> bool:
    # ListSAMLProviders has no pagination: one call returns every provider
    return arn in list_provider_arns(iam)


def fetch_metadata(s3, bucket: str, key: str) -> str:
    with tempfile.TemporaryDirectory() as tmpdir:
        local_filename = os.path.join(tmpdir, os.path.basename(key) or DEFAULT_FILENAME)
        s3.download_file(bucket, key, local_filename)
        with open(local_filename, 'r', encoding='utf-8') as fp:
            return fp.read()


def _error_code(e: ClientError) -> str:
    return str(e.response.get('Error', {}).get('Code', ''))


def create_provider(config: SamlProviderConfig, iam, s3) -> Result:
    try:
        document = fetch_metadata(s3, config.bucket_name, config.filename)
    except ClientError as e:
        if _error_code(e) in NOT_FOUND_CODES:
            reason = "The file {} does not exist in the bucket {}.".format(config.filename, config.bucket_name)
            logger.warning(reason)
            return Result(Outcome.SKIPPED_MISSING_SOURCE, reason)
        logger.error("Fetching s3://%s/%s failed: %s", config.bucket_name, config.filename, e)
        return Result(Outcome.FAILED, str(e))

    try:
        iam.create_saml_provider(SAMLMetadataDocument=document, Name=config.provider_name)
    except ClientError as e:
        logger.error("Creating SAML provider %s failed: %s", config.provider_name, e)
        return Result(Outcome.FAILED, str(e))

    logger.info("Created SAML provider %s", config.provider_arn)
    return Result(Outcome.CREATED)


def delete_provider(config: SamlProviderConfig, iam) -> Result:
    try:
        iam.delete_saml_provider(SAMLProviderArn=config.provider_arn)
    except ClientError as e:
        logger.error("Deleting SAML provider %s failed: %s", config.provider_arn, e)
        return Result(Outcome.FAILED, str(e))

    logger.info("Deleted SAML provider %s", config.provider_arn)
    return Result(Outcome.DELETED)


def reconcile(request_type: str, config: SamlProviderConfig, iam=None, s3=None) -> Result:
    """Perform at most one mutating call for ``request_type``.

    Args:
        request_type (str): CloudFormation RequestType (Create, Update, Delete)
        config (SamlProviderConfig): provider and metadata location
        iam: boto3 IAM client
        s3: boto3 S3 client, only used when a provider is created

    Returns:
        Result: what was done; ``Failed`` carries the service error
    """
    if iam is None:
        iam = boto3.client('iam')

    exists = provider_exists(iam, config.provider_arn)
    logger.info("SAML provider %s exists: %s", config.provider_arn, exists)

    if request_type in CREATE_REQUESTS:
        if exists:
            return Result(Outcome.ALREADY_PRESENT)
        if s3 is None:
            s3 = boto3.client('s3')
        return create_provider(config, iam, s3)

    if request_type in DELETE_REQUESTS:
        if not exists:
            return Result(Outcome.ALREADY_ABSENT)
        return delete_provider(config, iam)

    logger.warning("Unsupported request type: %s", request_type)
    return Result(Outcome.UNSUPPORTED, "Unsupported request type: {}".format(request_type))


def handler(event, context):
    logger.info(json.dumps(event))

    request_type = event.get('RequestType')
    config = SamlProviderConfig.from_event(event)
    result = reconcile(request_type, config)

    if not result.ok:
        raise ReconcileError(result.reason)
    if result.outcome is Outcome.SKIPPED_MISSING_SOURCE and config.fail_on_missing_metadata:
        raise ReconcileError(result.reason)

    if request_type in DELETE_REQUESTS and event.get('PhysicalResourceId'):
        physical_id = event['PhysicalResourceId']
    else:
        physical_id = config.provider_arn

    return {
        'PhysicalResourceId': physical_id,
        'Data': {'Response': result.outcome.value},
    }
