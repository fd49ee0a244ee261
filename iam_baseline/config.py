import logging
import typing
from dataclasses import dataclass, field

from . import load_yaml, package_path
from .lambdas.saml_provider.index import (
    DEFAULT_FILENAME,
    PROVIDER_NAME_PATTERN,
    ConfigError
)


DEFAULT_PROVIDER_NAME = 'idp'
DEFAULT_METADATA_FILENAME = DEFAULT_FILENAME
DEFAULT_STACK_NAME = 'iam-baseline'

# CloudFormation pattern syntax needs the same regex as the handler
SAML_PROVIDER_NAME_PATTERN = PROVIDER_NAME_PATTERN
SAML_AUDIENCE = 'https://signin.aws.amazon.com/saml'

ROLES_FILE = package_path('roles.yml')

TAG_CONTEXT_KEYS = ['environment', 'organisation', 'team', 'scope', 'application']


@dataclass
class RoleSpec:
    id: str
    role_name: str
    managed_policies: typing.List[str] = field(default_factory=list)
    federated: bool = False
    service: str = None
    path: str = '/'

    def __post_init__(self):
        if self.federated == bool(self.service):
            raise ConfigError("Role {} must be either federated or trusted by a service".format(self.id))


def load_roles(specfile: str = ROLES_FILE) -> typing.List[RoleSpec]:
    spec = load_yaml(specfile) or {}
    roles = []
    for entry in spec.get('roles', []):
        try:
            roles.append(RoleSpec(**entry))
        except TypeError as e:
            raise ConfigError("Bad role declaration in {}: {}".format(specfile, e)) from e

    ids = [r.id for r in roles]
    if len(ids) != len(set(ids)):
        raise ConfigError("Duplicate role id in {}".format(specfile))

    logging.debug("Loaded %d role(s) from %s", len(roles), specfile)
    return roles


def context_tags(node) -> typing.Dict[str, str]:
    """Stack tags from CDK context, skipping the ones not set."""
    tags = {tag: node.try_get_context(tag) for tag in TAG_CONTEXT_KEYS}
    return {k: str(v) for k, v in tags.items() if v is not None}
