"""Managed OpenShift cluster CLI (aroctl).

One-shot operations against a single cluster, sharing the reconciler used
by the operator loop.

Usage:
    aroctl apply cluster.yaml            # Create or update a cluster
    aroctl apply cluster.yaml --import   # Adopt an existing cluster
    aroctl plan cluster.yaml             # Show drift without changing anything
    aroctl refresh RESOURCE_GROUP NAME   # Read observed state
    aroctl destroy RESOURCE_GROUP NAME   # Delete a cluster
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from .config import DEFAULT_API_VERSION, DEFAULT_OPERATION_TIMEOUT_SECONDS, PollingConfig
from .credentials import CredentialPolicyError, get_credential
from .drift import PlanAction
from .errors import ClusterOperatorError
from .identity import ClusterIdentity
from .main import setup_logging
from .models import ClusterSpec, RemoteClusterState
from .reconciler import ClusterReconciler
from .remote import AzureOpenShiftClient, ClusterClient
from .spec_loader import SpecLoadError, load_spec
from .store import FileConfigStore

DEFAULT_STATE_DIR = ".aro-state"


def _echo_state(state: RemoteClusterState) -> None:
    click.echo(yaml.safe_dump(state.to_record(), sort_keys=False), nl=False)


def _reconciler(ctx: click.Context) -> ClusterReconciler:
    """Build the reconciler from the group options.

    A client placed in ctx.obj["client"] is used instead of Azure.
    """
    obj: dict[str, Any] = ctx.obj
    if obj.get("reconciler") is not None:
        return obj["reconciler"]

    if not obj["subscription_id"]:
        raise click.UsageError("--subscription or AZURE_SUBSCRIPTION_ID is required")
    if not obj["tenant_id"]:
        raise click.UsageError("--tenant or AZURE_TENANT_ID is required")

    client: ClusterClient | None = obj.get("client")
    if client is None:
        try:
            credential = get_credential(obj["client_id"])
        except CredentialPolicyError as e:
            raise click.ClickException(str(e)) from e
        client = AzureOpenShiftClient(credential, obj["subscription_id"], obj["api_version"])

    store = FileConfigStore(obj["subscription_id"], None, obj["state_dir"])
    reconciler = ClusterReconciler(
        client=client,
        store=store,
        tenant_id=obj["tenant_id"],
        polling=PollingConfig(timeout_seconds=obj["timeout"]),
        require_import=obj["require_import"],
    )
    obj["reconciler"] = reconciler
    return reconciler


def _identity(ctx: click.Context, resource_group: str, name: str) -> ClusterIdentity:
    return ClusterIdentity(
        subscription_id=ctx.obj["subscription_id"],
        resource_group=resource_group,
        name=name,
    )


def _load(spec_file: Path) -> ClusterSpec:
    try:
        return load_spec(spec_file)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version="0.1.0", prog_name="aroctl")
@click.option("--subscription", "-s", envvar="AZURE_SUBSCRIPTION_ID", default="", help="Azure subscription ID")
@click.option("--tenant", "-t", envvar="AZURE_TENANT_ID", default="", help="Tenant for AAD identity providers")
@click.option("--client-id", envvar="AZURE_CLIENT_ID", default=None, help="User-assigned managed identity")
@click.option(
    "--state-dir",
    envvar="STATE_DIR",
    default=DEFAULT_STATE_DIR,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for observed state records",
)
@click.option("--api-version", envvar="API_VERSION", default=DEFAULT_API_VERSION, help="Cluster API version")
@click.option(
    "--timeout",
    envvar="OPERATION_TIMEOUT",
    default=DEFAULT_OPERATION_TIMEOUT_SECONDS,
    type=float,
    help="Seconds to wait for an operation",
)
@click.option(
    "--require-import/--no-require-import",
    envvar="REQUIRE_IMPORT",
    default=True,
    help="Refuse to adopt existing clusters (default: true)",
)
@click.option("--log-level", envvar="LOG_LEVEL", default="WARNING", help="Logging level")
@click.pass_context
def cli(
    ctx: click.Context,
    subscription: str,
    tenant: str,
    client_id: str | None,
    state_dir: Path,
    api_version: str,
    timeout: float,
    require_import: bool,
    log_level: str,
) -> None:
    """aroctl - Managed OpenShift cluster CLI.

    \b
    Operations:
      apply     Create or update a cluster from a spec file
      plan      Show what apply would change
      refresh   Read and record a cluster's observed state
      destroy   Delete a cluster
    """
    setup_logging(log_level, stream=sys.stderr)
    ctx.ensure_object(dict)
    ctx.obj.update(
        subscription_id=subscription,
        tenant_id=tenant,
        client_id=client_id,
        state_dir=state_dir,
        api_version=api_version,
        timeout=timeout,
        require_import=require_import,
    )


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--import", "import_existing", is_flag=True, help="Adopt an existing cluster")
@click.pass_context
def apply(ctx: click.Context, spec_file: Path, import_existing: bool) -> None:
    """Create or update the cluster declared in SPEC_FILE."""
    spec = _load(spec_file)
    reconciler = _reconciler(ctx)
    identity = _identity(ctx, spec.resource_group_name, spec.name)

    try:
        state = asyncio.run(reconciler.apply(identity, spec, import_existing=import_existing))
    except ClusterOperatorError as e:
        raise click.ClickException(str(e)) from e

    _echo_state(state)


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def plan(ctx: click.Context, spec_file: Path) -> None:
    """Show the changes apply would make for SPEC_FILE.

    Exits with status 2 when a force-replace field changed.
    """
    spec = _load(spec_file)
    reconciler = _reconciler(ctx)
    identity = _identity(ctx, spec.resource_group_name, spec.name)

    try:
        result = asyncio.run(reconciler.plan(identity, spec))
    except ClusterOperatorError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"{result.resource_id}: {result.action.value}")
    if result.diff is not None:
        for change in result.diff.changes:
            click.echo(f"  {change.describe()}")

    if result.action is PlanAction.REPLACE:
        ctx.exit(2)


@cli.command()
@click.argument("resource_group")
@click.argument("name")
@click.pass_context
def refresh(ctx: click.Context, resource_group: str, name: str) -> None:
    """Read the observed state of cluster NAME in RESOURCE_GROUP."""
    reconciler = _reconciler(ctx)
    identity = _identity(ctx, resource_group, name)

    try:
        state = asyncio.run(reconciler.refresh(identity))
    except ClusterOperatorError as e:
        raise click.ClickException(str(e)) from e

    if state is None:
        click.echo(f"{identity.resource_id}: absent")
        return
    _echo_state(state)


@cli.command()
@click.argument("resource_group")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def destroy(ctx: click.Context, resource_group: str, name: str, yes: bool) -> None:
    """Delete cluster NAME in RESOURCE_GROUP."""
    identity = _identity(ctx, resource_group, name)
    if not yes:
        click.confirm(f"Delete {identity.resource_id}?", abort=True)

    reconciler = _reconciler(ctx)
    try:
        asyncio.run(reconciler.destroy(identity))
    except ClusterOperatorError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"{identity.resource_id}: deleted")


if __name__ == "__main__":
    cli()
