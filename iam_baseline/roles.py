import logging
import typing
from aws_cdk import (
    aws_iam
)
from constructs import Construct
from .config import ROLES_FILE, SAML_AUDIENCE, RoleSpec, load_roles


def saml_principal(provider_arn: str) -> aws_iam.FederatedPrincipal:
    return aws_iam.FederatedPrincipal(
        federated=provider_arn,
        assume_role_action='sts:AssumeRoleWithSAML',
        conditions={'StringEquals': {'SAML:aud': SAML_AUDIENCE}}
    )


class BaselineRoles(Construct):
    """Account access roles: SAML federated ones plus service roles."""
    roles: typing.Dict[str, aws_iam.Role]

    def __init__(self, scope: Construct, id: str,
        *,
        provider_arn: str,
        specs: typing.List[RoleSpec]=None,
        specfile: str=ROLES_FILE) -> None:
        super().__init__(scope, id)

        if specs is None:
            specs = load_roles(specfile)

        self.provider_arn = provider_arn
        self.roles = dict()
        for spec in specs:
            self.roles[spec.id] = self.create_role(spec)

    def principal(self, spec: RoleSpec) -> aws_iam.IPrincipal:
        if spec.federated:
            return saml_principal(self.provider_arn)
        return aws_iam.ServicePrincipal(spec.service)

    def create_role(self, spec: RoleSpec) -> aws_iam.Role:
        logging.info("Role: %s (%s)", spec.role_name, ', '.join(spec.managed_policies))
        return aws_iam.Role(
            self, spec.id,
            role_name=spec.role_name,
            path=spec.path,
            assumed_by=self.principal(spec),
            managed_policies=[
                aws_iam.ManagedPolicy.from_aws_managed_policy_name(name) for name in spec.managed_policies
            ]
        )

    def __getitem__(self, id: str) -> aws_iam.Role:
        return self.roles[id]
