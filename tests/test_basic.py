import pytest
import iam_baseline

from aws_cdk import App
from aws_cdk.assertions import Match, Template
from iam_baseline.config import SAML_AUDIENCE, SAML_PROVIDER_NAME_PATTERN
from iam_baseline.stack import IamBaselineStack

app = App()
stack = IamBaselineStack(app, 'stack')
template = Template.from_stack(stack)


def federated_trust():
    return Match.object_like({
        'Statement': [Match.object_like({
            'Action': 'sts:AssumeRoleWithSAML',
            'Effect': 'Allow',
            'Condition': {'StringEquals': {'SAML:aud': SAML_AUDIENCE}},
            'Principal': {'Federated': Match.any_value()}
        })]
    })


class TestIamBaseline:
    def test_version(self):
        assert iam_baseline.__version__

    def test_description(self):
        assert template.to_json()['Description'] == 'Creates the IAM roles and policies for the designated account'

    def test_parameters(self):
        template.has_parameter('SamlProviderName', {
            'Type': 'String',
            'Default': 'idp',
            'AllowedPattern': SAML_PROVIDER_NAME_PATTERN
        })
        template.has_parameter('SamlMetadataBucket', {'Type': 'String'})
        template.has_parameter('SamlMetadataFilename', {'Type': 'String', 'Default': 'SAML.xml'})
        assert 'Default' not in template.find_parameters('SamlMetadataBucket')['SamlMetadataBucket']

    def test_interface_metadata(self):
        interface = template.to_json()['Metadata']['AWS::CloudFormation::Interface']
        assert interface['ParameterGroups'] == [{
            'Label': {'default': 'IAM Settings'},
            'Parameters': ['SamlProviderName', 'SamlMetadataBucket', 'SamlMetadataFilename']
        }]
        assert interface['ParameterLabels']['SamlMetadataBucket'] == {'default': 'SAML Metadata Bucket'}

    def test_custom_resource(self):
        template.resource_count_is('Custom::CreateSamlIdentityProvider', 1)
        template.has_resource_properties('Custom::CreateSamlIdentityProvider', {
            'saml_provider_name': {'Ref': 'SamlProviderName'},
            'saml_bucket_name': {'Ref': 'SamlMetadataBucket'},
            'saml_filename': {'Ref': 'SamlMetadataFilename'},
            'saml_provider_arn': Match.any_value(),
            'fail_on_missing_metadata': 'false'
        })

    def test_handler_function(self):
        template.has_resource_properties('AWS::Lambda::Function', {
            'Handler': 'index.handler',
            'MemorySize': 1024,
            'Timeout': 5,
            'Environment': {'Variables': Match.object_like({
                'saml_provider_name': {'Ref': 'SamlProviderName'},
                'saml_bucket_name': {'Ref': 'SamlMetadataBucket'}
            })}
        })

    def test_handler_permissions(self):
        template.has_resource_properties('AWS::IAM::Role', {
            'AssumeRolePolicyDocument': Match.object_like({
                'Statement': [Match.object_like({'Principal': {'Service': 'lambda.amazonaws.com'}})]
            }),
            'Policies': [{
                'PolicyName': 'SAMLPermissions',
                'PolicyDocument': Match.object_like({
                    'Statement': [
                        Match.object_like({'Action': 's3:GetObject'}),
                        Match.object_like({
                            'Action': ['iam:CreateSAMLProvider', 'iam:DeleteSAMLProvider', 'iam:ListSAMLProviders'],
                            'Resource': '*'
                        })
                    ]
                })
            }]
        })

    @pytest.mark.parametrize('role_name', ['SAML-Administrator', 'SAML-PowerUser', 'SAML-Readonly'])
    def test_federated_roles(self, role_name):
        template.has_resource_properties('AWS::IAM::Role', {
            'RoleName': role_name,
            'Path': '/',
            'AssumeRolePolicyDocument': federated_trust()
        })

    def test_cloudformation_role(self):
        template.has_resource_properties('AWS::IAM::Role', {
            'RoleName': 'CloudFormationFullAccessServiceRole',
            'AssumeRolePolicyDocument': Match.object_like({
                'Statement': [Match.object_like({
                    'Action': 'sts:AssumeRole',
                    'Principal': {'Service': 'cloudformation.amazonaws.com'}
                })]
            })
        })

    def test_roles_wait_for_provider(self):
        roles = template.find_resources('AWS::IAM::Role', {'Properties': {'RoleName': 'SAML-Readonly'}})
        (role,) = roles.values()
        custom = template.find_resources('Custom::CreateSamlIdentityProvider')
        assert set(custom) <= set(role['DependsOn'])

    def test_outputs(self):
        template.has_output('SamlProviderArn', {})
        template.has_output('SamlProviderResponse', {})


class TestCustomRoles:
    def test_roles_file(self, tmp_path):
        specfile = tmp_path / 'roles.yml'
        specfile.write_text("""
roles:
  - id: Billing
    role_name: SAML-Billing
    federated: true
    managed_policies: [job-function/Billing]
""")
        custom = Template.from_stack(IamBaselineStack(App(), 'custom', roles_file=str(specfile)))
        roles = custom.find_resources('AWS::IAM::Role', {'Properties': {'RoleName': Match.any_value()}})
        assert [r['Properties']['RoleName'] for r in roles.values()] == ['SAML-Billing']

    def test_strict_missing_metadata(self):
        strict = Template.from_stack(IamBaselineStack(App(), 'strict', fail_on_missing_metadata=True))
        strict.has_resource_properties('Custom::CreateSamlIdentityProvider', {
            'fail_on_missing_metadata': 'true'
        })
