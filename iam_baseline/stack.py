from aws_cdk import (
    CfnOutput,
    CfnParameter,
    Stack
)
from constructs import Construct
from .config import (
    DEFAULT_METADATA_FILENAME,
    DEFAULT_PROVIDER_NAME,
    ROLES_FILE,
    SAML_PROVIDER_NAME_PATTERN
)
from .roles import BaselineRoles
from .saml_provider import SamlIdentityProvider


PARAMETER_LABELS = {
    'SamlProviderName': 'SAML Provider Name',
    'SamlMetadataBucket': 'SAML Metadata Bucket',
    'SamlMetadataFilename': 'SAML Metadata Filename',
}


class IamBaselineStack(Stack):
    """IAM roles and SAML identity provider for the designated account.

    Precondition: the SAML metadata XML file exists in the S3 bucket given
    as the SamlMetadataBucket parameter.
    """
    provider_name: CfnParameter
    metadata_bucket: CfnParameter
    metadata_filename: CfnParameter
    saml: SamlIdentityProvider
    roles: BaselineRoles

    def __init__(self, scope: Construct, id: str,
        *,
        roles_file: str=ROLES_FILE,
        fail_on_missing_metadata: bool=False,
        **kwargs) -> None:
        kwargs.setdefault('description', 'Creates the IAM roles and policies for the designated account')
        super().__init__(scope, id, **kwargs)

        self.provider_name = CfnParameter(
            self, 'SamlProviderName',
            type='String',
            description='Name of SAML provider to be created',
            default=DEFAULT_PROVIDER_NAME,
            allowed_pattern=SAML_PROVIDER_NAME_PATTERN
        )
        self.metadata_bucket = CfnParameter(
            self, 'SamlMetadataBucket',
            type='String',
            description='Name of existing S3 bucket where the SAML metadata file resides'
        )
        self.metadata_filename = CfnParameter(
            self, 'SamlMetadataFilename',
            type='String',
            description='Name of existing XML SAML metadata filename in the S3 bucket above',
            default=DEFAULT_METADATA_FILENAME
        )
        self.add_interface_metadata()

        # CloudFormation can't create a SAML provider from an S3 document by itself
        self.saml = SamlIdentityProvider(
            self, 'CreateSamlIdentityProvider',
            provider_name=self.provider_name.value_as_string,
            metadata_bucket=self.metadata_bucket.value_as_string,
            metadata_filename=self.metadata_filename.value_as_string,
            fail_on_missing_metadata=fail_on_missing_metadata
        )

        self.roles = BaselineRoles(
            self, 'Roles',
            provider_arn=self.saml.provider_arn,
            specfile=roles_file
        )
        # Trust policies reference the provider: create it first
        self.roles.node.add_dependency(self.saml.resource)

        CfnOutput(self, 'SamlProviderArn', value=self.saml.provider_arn)
        CfnOutput(self, 'SamlProviderResponse', value=self.saml.response)

    def add_interface_metadata(self):
        self.template_options.metadata = {
            'AWS::CloudFormation::Interface': {
                'ParameterGroups': [
                    {
                        'Label': {'default': 'IAM Settings'},
                        'Parameters': list(PARAMETER_LABELS),
                    }
                ],
                'ParameterLabels': dict(
                    (name, {'default': label}) for name, label in PARAMETER_LABELS.items()
                ),
            }
        }
