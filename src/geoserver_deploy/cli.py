#!/usr/bin/env python
"""Command-line interface for geoserver-deploy.

This module provides the main CLI entry point, handling command-line
argument parsing and dispatching to the release facade and the TLS helpers.
"""

import contextlib
import sys
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import click
import questionary
from icecream import ic

from geoserver_deploy import __version__, console
from geoserver_deploy.chart.render import dump_manifests, render_release
from geoserver_deploy.config import build_values
from geoserver_deploy.core.host import Host
from geoserver_deploy.core.release import DEFAULT_NAMESPACE, DEFAULT_RELEASE, DEPLOY_TIMEOUT, GeoServerRelease
from geoserver_deploy.exceptions import GeoServerDeployError
from geoserver_deploy.models import Environment, KeystoreParams, ShellSyntax
from geoserver_deploy.secrets.credentials import export_lines, show_credentials
from geoserver_deploy.secrets.keystore import RESTART_TIMEOUT
from geoserver_deploy.secrets.policy import generate_password
from geoserver_deploy.styles import PROMPT_STYLE, QMARK
from geoserver_deploy.tls.generator import CERT_FILE, KeystoreGenerator
from geoserver_deploy.tls.manifests import certificate, cluster_issuers, https_secret, write_manifests

ENVIRONMENT_CHOICES = [env.value for env in Environment]
HTTPS_SECRET_FILE = "geoserver-https-secret.yaml"
ISSUER_FILE = "letsencrypt-clusterissuer.yaml"
CERTIFICATE_FILE = "cert-manager-certificate.yaml"
_DEFAULT_PARAMS = KeystoreParams()


@contextmanager
def _reported_errors() -> Generator[None, None, None]:
    """Print operator-facing failures and exit non-zero."""
    try:
        yield
    except GeoServerDeployError as e:
        console.error(str(e))
        sys.exit(1)


def _open_release(ctx: click.Context, release: str, namespace: str) -> GeoServerRelease:
    return GeoServerRelease(
        release,
        namespace,
        context=ctx.obj["context"],
        select_context=ctx.obj["select"],
    )


namespace_option = click.option(
    "--namespace",
    "-n",
    envvar="GEOSERVER_NAMESPACE",
    default=DEFAULT_NAMESPACE,
    show_default=True,
    help="Kubernetes namespace",
)
release_option = click.option(
    "--release",
    "-r",
    envvar="GEOSERVER_RELEASE",
    default=DEFAULT_RELEASE,
    show_default=True,
    help="release name",
)
values_file_option = click.option(
    "--values-file",
    "-f",
    type=click.Path(dir_okay=False, path_type=Path),
    help="values file layered on top of the environment profile",
)
set_option = click.option("--set", "overrides", multiple=True, metavar="PATH=VALUE", help="override a single value")


@click.group(invoke_without_command=True, help="Deploy and operate GeoServer on Kubernetes")
@click.option("--version", "-v", required=False, is_flag=True, help="print version")
@click.option("--debug", required=False, is_flag=True, help="print debug information")
@click.option("--context", required=False, help="kubeconfig context to use")
@click.option("--select", required=False, is_flag=True, default=False, help="prompt for context select")
@click.pass_context
def cli(ctx: click.Context, version: bool, debug: bool, context: str | None, select: bool) -> None:
    """Process global options.

    Args:
        ctx: Click context, used to hand the cluster options to subcommands.
        version: Print version and exit.
        debug: Enable debug output.
        context: Explicit kubeconfig context.
        select: Prompt for Kubernetes context selection.

    """
    if not debug:
        ic.disable()
    else:
        ic.enable()

    if version:
        click.echo(__version__)
        return

    ctx.ensure_object(dict)
    ctx.obj.update(context=context, select=select)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(help="Install or upgrade a GeoServer release")
@click.argument("environment", type=click.Choice(ENVIRONMENT_CHOICES))
@namespace_option
@release_option
@values_file_option
@set_option
@click.option("--dry-run", is_flag=True, help="validate without changing the cluster")
@click.option("--no-wait", is_flag=True, help="do not wait for the rollout")
@click.option("--timeout", type=int, default=DEPLOY_TIMEOUT, show_default=True, help="rollout timeout in seconds")
@click.pass_context
def deploy(
    ctx: click.Context,
    environment: str,
    namespace: str,
    release: str,
    values_file: Path | None,
    overrides: tuple[str, ...],
    dry_run: bool,
    no_wait: bool,
    timeout: int,
) -> None:
    env = Environment(environment)
    console.action("Starting GeoServer deployment...")
    console.step(f"Environment: {env.value}")
    console.step(f"Namespace: {namespace}")
    console.step(f"Release: {release}")

    with _reported_errors():
        values = build_values(env, values_file=values_file, overrides=overrides)
        Host().require("kubectl")
        with _open_release(ctx, release, namespace) as geoserver:
            ic(geoserver)
            geoserver.deploy(env, values, dry_run=dry_run, wait=not no_wait, timeout=timeout)


@cli.command(help="Render the manifests of a release without contacting the cluster")
@click.argument("environment", type=click.Choice(ENVIRONMENT_CHOICES))
@namespace_option
@release_option
@values_file_option
@set_option
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="write to a file instead")
def template(
    environment: str,
    namespace: str,
    release: str,
    values_file: Path | None,
    overrides: tuple[str, ...],
    output: Path | None,
) -> None:
    with _reported_errors():
        values = build_values(Environment(environment), values_file=values_file, overrides=overrides)
        manifests = dump_manifests(render_release(values, release=release, namespace=namespace))

    if output is None:
        click.echo(manifests, nl=False)
        return
    output.write_text(manifests)
    console.success(f"Manifests written to {console.highlight(str(output))}")


@cli.command("add-keystore", help="Add a keystore file to the HTTPS secret of a release")
@click.option(
    "--keystore",
    "-k",
    "keystore_file",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="keystore file to upload",
)
@namespace_option
@release_option
@click.option("--secret", "-s", "secret_name", help="secret name (auto-detected when omitted)")
@click.option("--dry-run", is_flag=True, help="show what would be done without making changes")
@click.option("--no-restart", is_flag=True, help="do not restart the deployment")
@click.option("--timeout", type=int, default=RESTART_TIMEOUT, show_default=True, help="restart timeout in seconds")
@click.pass_context
def add_keystore(
    ctx: click.Context,
    keystore_file: Path,
    namespace: str,
    release: str,
    secret_name: str | None,
    dry_run: bool,
    no_restart: bool,
    timeout: int,
) -> None:
    if dry_run:
        console.dry_run("No changes will be made")

    with _reported_errors():
        with _open_release(ctx, release, namespace) as geoserver:
            geoserver.add_keystore(
                keystore_file,
                secret_name=secret_name,
                dry_run=dry_run,
                restart=not no_restart,
                timeout=timeout,
            )


@cli.command("get-admin-password", help="Show the admin credentials of a release")
@release_option
@namespace_option
@click.option("--export", "export", is_flag=True, help="only print environment assignments, for eval")
@click.option(
    "--shell",
    type=click.Choice([syntax.value for syntax in ShellSyntax]),
    help="syntax of the environment assignments (default: detected from the platform)",
)
@click.pass_context
def get_admin_password(ctx: click.Context, release: str, namespace: str, export: bool, shell: str | None) -> None:
    syntax = ShellSyntax(shell) if shell else Host().default_shell

    # stdout carries only the eval-able assignments
    diagnostics = console.to_stderr() if export else contextlib.nullcontext()
    with diagnostics, _reported_errors():
        with _open_release(ctx, release, namespace) as geoserver:
            credentials = geoserver.admin_credentials()
    ic(credentials)

    if export:
        for line in export_lines(credentials, syntax):
            click.echo(line)
        return

    show_credentials(credentials, release, namespace)
    bind = questionary.confirm(
        "Print commands to set these credentials as environment variables?",
        default=False,
        style=PROMPT_STYLE,
        qmark=QMARK,
    ).ask()
    if bind:
        hint = "Invoke-Expression" if syntax is ShellSyntax.POWERSHELL else "eval"
        console.info(f"Run these in your shell (or use --export with {hint}):")
        for line in export_lines(credentials, syntax):
            click.echo(line)


@cli.group(help="Create certificates, keystores and cert-manager manifests")
def ssl() -> None:
    pass


def _keystore_outputs(generator: KeystoreGenerator, password_generated: bool, namespace: str, secret: str) -> None:
    keystore = generator.keystore_path
    console.success("Keystore created successfully!")
    created = [keystore, generator.password_path, generator.work_dir / CERT_FILE]
    console.listing([str(path) for path in created if path.exists()], empty="No files created")
    if password_generated:
        console.info(f"Keystore password generated and saved to {console.highlight(str(generator.password_path))}")
    console.action("Creating Kubernetes secret...")
    document = https_secret(keystore, generator.password, name=secret, namespace=namespace)
    write_manifests(generator.work_dir / HTTPS_SECRET_FILE, [document])


@ssl.command("self-signed", help="Create a self-signed certificate and JKS keystore")
@click.option("--domain", "-d", default=_DEFAULT_PARAMS.domain, show_default=True, help="domain name")
@click.option("--password", "-p", help="keystore password (generated when omitted)")
@click.option("--alias", "-a", default=_DEFAULT_PARAMS.alias, show_default=True, help="key alias")
@click.option("--organization", default=_DEFAULT_PARAMS.organization, show_default=True, help="subject organization")
@click.option("--country", default=_DEFAULT_PARAMS.country, show_default=True, help="subject country code")
@click.option("--days", type=int, default=_DEFAULT_PARAMS.validity_days, show_default=True, help="validity in days")
@namespace_option
@click.option("--secret-name", default="geoserver-https", show_default=True, help="name of the secret manifest")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="directory for the generated files",
)
def self_signed(
    domain: str,
    password: str | None,
    alias: str,
    organization: str,
    country: str,
    days: int,
    namespace: str,
    secret_name: str,
    output_dir: Path,
) -> None:
    params = KeystoreParams(
        domain=domain,
        organization=organization,
        country=country,
        validity_days=days,
        alias=alias,
        namespace=namespace,
    )
    generator = KeystoreGenerator(params, password or generate_password(), work_dir=output_dir)
    with _reported_errors():
        generator.generate()
        _keystore_outputs(generator, password is None, namespace, secret_name)


@ssl.command("from-pem", help="Create a JKS keystore from existing PEM files")
@click.option("--cert", "-c", "cert_file", required=True, type=click.Path(path_type=Path), help="certificate PEM file")
@click.option("--key", "-k", "key_file", required=True, type=click.Path(path_type=Path), help="private key PEM file")
@click.option("--password", "-p", help="keystore password (generated when omitted)")
@click.option("--alias", "-a", default=_DEFAULT_PARAMS.alias, show_default=True, help="key alias")
@namespace_option
@click.option("--secret-name", default="geoserver-https", show_default=True, help="name of the secret manifest")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="directory for the generated files",
)
def from_pem(
    cert_file: Path,
    key_file: Path,
    password: str | None,
    alias: str,
    namespace: str,
    secret_name: str,
    output_dir: Path,
) -> None:
    params = KeystoreParams(alias=alias, namespace=namespace)
    generator = KeystoreGenerator(params, password or generate_password(), work_dir=output_dir)
    with _reported_errors():
        generator.convert(cert_file, key_file)
        _keystore_outputs(generator, password is None, namespace, secret_name)


@ssl.command("cert-manager", help="Create cert-manager ClusterIssuers and a Certificate")
@click.option("--email", "-e", default="admin@example.com", show_default=True, help="ACME account email")
@click.option("--domain", "-d", default="geoserver.example.com", show_default=True, help="certificate domain")
@namespace_option
@click.option("--secret-name", default="geoserver-tls", show_default=True, help="TLS secret cert-manager fills")
@click.option(
    "--issuer",
    type=click.Choice(["letsencrypt-prod", "letsencrypt-staging"]),
    default="letsencrypt-prod",
    show_default=True,
    help="issuer the certificate uses",
)
@click.option("--ingress-class", default="nginx", show_default=True, help="ingress class for HTTP-01 solving")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="directory for the generated files",
)
def cert_manager(
    email: str,
    domain: str,
    namespace: str,
    secret_name: str,
    issuer: str,
    ingress_class: str,
    output_dir: Path,
) -> None:
    console.action("Creating cert-manager ClusterIssuer for Let's Encrypt...")
    output_dir.mkdir(parents=True, exist_ok=True)
    write_manifests(output_dir / ISSUER_FILE, cluster_issuers(email, ingress_class=ingress_class))
    write_manifests(
        output_dir / CERTIFICATE_FILE,
        [certificate(domain, namespace=namespace, secret_name=secret_name, issuer=issuer)],
    )
    console.info(f"Set ingress.tls.secretName={secret_name} so the ingress uses the issued certificate")


if __name__ == "__main__":
    cli()
