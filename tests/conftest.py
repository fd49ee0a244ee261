import os
import pytest
from botocore.exceptions import ClientError

from iam_baseline.lambdas.saml_provider import index

ACCOUNT = '123456789012'
METADATA = '<?xml version="1.0"?><EntityDescriptor entityID="https://idp.example.com"/>'


def client_error(code: str, operation: str, message: str='') -> ClientError:
    return ClientError({'Error': {'Code': code, 'Message': message or code}}, operation)


class FakeIam:
    """In-memory IAM SAML provider API."""

    def __init__(self, account: str=ACCOUNT, names=()):
        self.account = account
        self.providers = dict()
        self.calls = []
        self.create_error = None
        self.delete_error = None
        for name in names:
            self.providers[index.provider_arn(account, name)] = METADATA

    def list_saml_providers(self):
        self.calls.append('list')
        return {'SAMLProviderList': [{'Arn': arn} for arn in self.providers]}

    def create_saml_provider(self, SAMLMetadataDocument, Name):
        self.calls.append('create')
        if self.create_error:
            raise self.create_error
        arn = index.provider_arn(self.account, Name)
        if arn in self.providers:
            raise client_error('EntityAlreadyExists', 'CreateSAMLProvider')
        self.providers[arn] = SAMLMetadataDocument
        return {'SAMLProviderArn': arn}

    def delete_saml_provider(self, SAMLProviderArn):
        self.calls.append('delete')
        if self.delete_error:
            raise self.delete_error
        if SAMLProviderArn not in self.providers:
            raise client_error('NoSuchEntity', 'DeleteSAMLProvider')
        del self.providers[SAMLProviderArn]

    def count(self, call: str) -> int:
        return self.calls.count(call)


class FakeS3:
    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.error = None

    def download_file(self, bucket, key, filename):
        if self.error:
            raise self.error
        if (bucket, key) not in self.objects:
            raise client_error('404', 'HeadObject', 'Not Found')
        with open(filename, 'w', encoding='utf-8') as fp:
            fp.write(self.objects[(bucket, key)])


@pytest.fixture
def iam():
    return FakeIam()


@pytest.fixture
def s3():
    return FakeS3({('metadata-bucket', 'SAML.xml'): METADATA})


@pytest.fixture
def config():
    return index.SamlProviderConfig(
        provider_name='idp',
        provider_arn=index.provider_arn(ACCOUNT, 'idp'),
        bucket_name='metadata-bucket'
    )


@pytest.fixture
def clean_env(monkeypatch):
    for key in index.SamlProviderConfig.KEYS:
        monkeypatch.delenv(key, raising=False)
    return os.environ
