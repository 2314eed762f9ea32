"""Main CLI implementation using Typer."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from rich.console import Console

from podrecon.cli.commands import (
    apply_manifests,
    delete_pod,
    import_pod,
    plan_changes,
    show_pod,
    watch_manifests,
)
from podrecon.client.base import ClusterClient
from podrecon.client.kube import KubernetesClusterClient
from podrecon.engine.reconciler import PodReconciler
from podrecon.errors import PodError
from podrecon.manifest import load_settings
from podrecon.models.config import ClusterConfig, PodreconConfig
from podrecon.utils.logging import setup_logging


# Create Typer app
app = typer.Typer(
    name="podrecon",
    help="podrecon - declarative pod reconciliation",
    add_completion=False,
)

# Console for rich output
console = Console()


async def create_client(cluster: ClusterConfig) -> ClusterClient:
    """Build the cluster client used by every command."""
    return await KubernetesClusterClient.from_config(cluster)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Settings file (YAML)"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Log level override"
    ),
    kubeconfig: Optional[str] = typer.Option(
        None, "--kubeconfig", help="Path to the kubeconfig file"
    ),
    context: Optional[str] = typer.Option(
        None, "--context", help="Kubeconfig context to use"
    ),
):
    """Reconcile declared pods against a cluster."""
    try:
        settings = load_settings(config)
    except PodError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if kubeconfig:
        settings.cluster.kubeconfig = kubeconfig
    if context:
        settings.cluster.context = context
    setup_logging(log_level or settings.logging.level)
    ctx.obj = settings


def _run_cli_command(handler: Callable[..., Any], settings: PodreconConfig, **kwargs: Any):
    """Helper to run a CLI command with a reconciler and error handling."""

    async def run():
        client = await create_client(settings.cluster)
        try:
            reconciler = PodReconciler(
                client, settings.reconciler, default_namespace=settings.cluster.default_namespace
            )
            return await handler(reconciler, **kwargs)
        finally:
            await client.close()

    try:
        return asyncio.run(run())
    except PodError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("plan")
def plan_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Manifest file or directory"),
):
    """Show the changes apply would make."""
    _run_cli_command(plan_changes, ctx.obj, path=path)


@app.command("apply")
def apply_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Manifest file or directory"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report failures"),
):
    """Create or update pods to match the manifests."""
    _run_cli_command(apply_manifests, ctx.obj, path=path, quiet=quiet)


@app.command("get")
def get_command(
    ctx: typer.Context,
    pod_id: str = typer.Argument(..., help="Pod as name or namespace/name"),
    output: str = typer.Option("table", "--output", "-o", help="table, json or yaml"),
):
    """Show the live state of a pod."""
    if output not in ("table", "json", "yaml"):
        console.print(f"[red]Error:[/red] unknown output format: {output}")
        raise typer.Exit(1)
    _run_cli_command(show_pod, ctx.obj, pod_id=pod_id, output=output)


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    pod_id: str = typer.Argument(..., help="Pod as name or namespace/name"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Force removal without confirmation"
    ),
):
    """Delete a pod and wait until it is gone."""
    if not force:
        confirm = typer.confirm(f"Delete pod {pod_id}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(delete_pod, ctx.obj, pod_id=pod_id)


@app.command("import")
def import_command(
    ctx: typer.Context,
    pod_id: str = typer.Argument(..., help="Pod as namespace/name"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the manifest to this file"
    ),
):
    """Write a manifest for an existing pod."""
    _run_cli_command(import_pod, ctx.obj, pod_id=pod_id, output=output)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Manifest file or directory"),
    interval: Optional[int] = typer.Option(
        None, "--interval", "-i", help="Seconds between drift checks"
    ),
):
    """Keep pods in sync with the manifests until interrupted."""
    settings: PodreconConfig = ctx.obj
    try:
        _run_cli_command(
            watch_manifests,
            settings,
            path=path,
            interval=interval or settings.watch_interval,
        )
    except KeyboardInterrupt:
        console.print("Stopped watching")


def main():
    """Main entry point for CLI."""
    app()
