import logging
from aws_cdk import (
    aws_iam,
    aws_lambda,
    custom_resources as cr,
    CustomResource,
    Duration,
    Stack
)
from constructs import Construct
from . import package_path
from .config import DEFAULT_METADATA_FILENAME


HANDLER_PATH = package_path('lambdas', 'saml_provider')


class SamlIdentityProvider(Construct):
    """IAM SAML provider created from a metadata document stored in S3.

    CloudFormation builds the provider through a custom resource: a Lambda
    function downloads the metadata and calls iam:CreateSAMLProvider, and
    iam:DeleteSAMLProvider when the resource goes away.
    """
    role: aws_iam.Role
    function: aws_lambda.Function
    provider: cr.Provider
    resource: CustomResource
    provider_arn: str

    def __init__(self, scope: Construct, id: str,
        *,
        provider_name: str,
        metadata_bucket: str,
        metadata_filename: str=DEFAULT_METADATA_FILENAME,
        fail_on_missing_metadata: bool=False,
        runtime: aws_lambda.Runtime=aws_lambda.Runtime.PYTHON_3_12,
        memory_size: int=1024,
        timeout: Duration=Duration.seconds(5)) -> None:
        super().__init__(scope, id)

        stack = Stack.of(self)
        self.provider_arn = stack.format_arn(
            service='iam',
            region='',
            resource='saml-provider',
            resource_name=provider_name
        )
        metadata_arn = stack.format_arn(
            service='s3',
            region='',
            account='',
            resource=metadata_bucket,
            resource_name=metadata_filename
        )

        self.role = self.create_role(metadata_arn)

        settings = dict(
            saml_bucket_name=metadata_bucket,
            saml_filename=metadata_filename,
            saml_provider_name=provider_name,
            saml_provider_arn=self.provider_arn,
        )

        logging.info("SAML provider handler: %s", HANDLER_PATH)
        self.function = aws_lambda.Function(
            self, 'function',
            description='Creates the SAML identity provider',
            code=aws_lambda.Code.from_asset(HANDLER_PATH, exclude=['__pycache__', '*.pyc']),
            handler='index.handler',
            runtime=runtime,
            memory_size=memory_size,
            timeout=timeout,
            role=self.role,
            environment=settings
        )

        self.provider = cr.Provider(
            self, 'provider',
            on_event_handler=self.function
        )

        # Updating any of these values re-runs the handler
        properties = dict(settings)
        properties['fail_on_missing_metadata'] = str(fail_on_missing_metadata).lower()
        self.resource = CustomResource(
            self, 'resource',
            service_token=self.provider.service_token,
            resource_type='Custom::CreateSamlIdentityProvider',
            properties=properties
        )

    def create_role(self, metadata_arn: str) -> aws_iam.Role:
        return aws_iam.Role(
            self, 'service-role',
            assumed_by=aws_iam.ServicePrincipal('lambda.amazonaws.com'),
            path='/',
            managed_policies=[
                aws_iam.ManagedPolicy.from_aws_managed_policy_name('service-role/AWSLambdaBasicExecutionRole')
            ],
            inline_policies={
                'SAMLPermissions': aws_iam.PolicyDocument(statements=[
                    aws_iam.PolicyStatement(
                        actions=['s3:GetObject'],
                        resources=[metadata_arn]
                    ),
                    aws_iam.PolicyStatement(
                        actions=[
                            'iam:CreateSAMLProvider',
                            'iam:DeleteSAMLProvider',
                            'iam:ListSAMLProviders'
                        ],
                        resources=['*']
                    )
                ])
            }
        )

    @property
    def response(self) -> str:
        """Outcome reported by the last handler run (Created, AlreadyPresent...)."""
        return self.resource.get_att_string('Response')
