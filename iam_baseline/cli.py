#!/usr/bin/env python3
import logging
import sys
import boto3
import click
from .config import DEFAULT_METADATA_FILENAME, DEFAULT_PROVIDER_NAME, ROLES_FILE, load_roles
from .lambdas.saml_provider import index


def _session(ctx) -> boto3.Session:
    return boto3.Session(profile_name=ctx.obj['profile'], region_name=ctx.obj['region'])


def _provider_arn(session: boto3.Session, name: str, account: str=None) -> str:
    if not account:
        account = session.client('sts').get_caller_identity()['Account']
    return index.provider_arn(account, name)


@click.group(help="IAM baseline SAML provider helper")
@click.option('--profile', '-p', type=click.types.STRING, default=None, help='AWS profile')
@click.option('--region', '-r', type=click.types.STRING, default=None)
@click.option('--debug', '-d', is_flag=True, default=False)
@click.pass_context
def cli(ctx, profile, region, debug):
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj.update(profile=profile, region=region, debug=debug)


@click.argument('name', type=click.types.STRING, default=DEFAULT_PROVIDER_NAME)
@click.option('--account', '-a', type=click.types.STRING, default=None, help='Account id (default: caller identity)')
@cli.command(short_help='Does the SAML provider exist?')
@click.pass_context
def status(ctx, name, account):
    session = _session(ctx)
    arn = _provider_arn(session, name, account)
    exists = index.provider_exists(session.client('iam'), arn)
    click.secho("{}: {}".format(arn, 'present' if exists else 'absent'), bold=exists)


@click.argument('request_type', type=click.Choice(['Create', 'Update', 'Delete']))
@click.option('--bucket', '-b', type=click.types.STRING, required=True, help='S3 bucket holding the SAML metadata')
@click.option('--filename', '-f', type=click.types.STRING, default=DEFAULT_METADATA_FILENAME)
@click.option('--name', '-n', type=click.types.STRING, default=DEFAULT_PROVIDER_NAME)
@click.option('--account', '-a', type=click.types.STRING, default=None, help='Account id (default: caller identity)')
@click.option('--strict', '-s', help='Fail when the metadata file is missing', is_flag=True, default=False)
@cli.command(short_help='Run the custom resource reconciliation locally')
@click.pass_context
def reconcile(ctx, request_type, bucket, filename, name, account, strict):
    session = _session(ctx)
    try:
        config = index.SamlProviderConfig(
            provider_name=name,
            provider_arn=_provider_arn(session, name, account),
            bucket_name=bucket,
            filename=filename,
            fail_on_missing_metadata=strict
        )
    except index.ConfigError as e:
        raise click.BadParameter(str(e))

    if ctx.obj['debug']:
        click.secho("Provider: {}".format(config.provider_arn), dim=True)
        click.secho("Metadata: s3://{}/{}".format(config.bucket_name, config.filename), dim=True)

    result = index.reconcile(request_type, config, iam=session.client('iam'), s3=session.client('s3'))

    failed = not result.ok or (strict and result.outcome is index.Outcome.SKIPPED_MISSING_SOURCE)
    click.secho("{} {}: {}".format(request_type, config.provider_arn, result.outcome.value), bold=True, fg='red' if failed else None)
    if result.reason:
        click.secho(result.reason, dim=True)
    if failed:
        sys.exit(1)


@click.argument('specfile', type=click.types.STRING, default=ROLES_FILE)
@cli.command(short_help='List the declared account roles')
def roles(specfile):
    for spec in load_roles(specfile):
        trust = 'saml' if spec.federated else spec.service
        click.secho("{} ({}): {}".format(spec.role_name, trust, ', '.join(spec.managed_policies)))


if __name__ == "__main__":
    cli()
