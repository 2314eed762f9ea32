"""Command implementations for CLI."""

import asyncio
import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from ruamel.yaml import YAML
from watchfiles import awatch

from podrecon.engine.classifier import ChangeAction, classify
from podrecon.engine.reconciler import PodReconciler, PodState, UpdateResult, render_path
from podrecon.errors import PodError
from podrecon.manifest import ManifestLoader
from podrecon.models.pod import PodSpec
from podrecon.translator import canonical_json


logger = logging.getLogger(__name__)

console = Console()
stderr_console = Console(stderr=True)

ACTION_STYLES = {
    "create": "green",
    "no change": "dim",
    "in-place": "yellow",
    "replace": "red",
}


def _load(loader: ManifestLoader) -> ManifestLoader:
    loader.load()
    for manifest, error in loader.errors.items():
        stderr_console.print(f"[red]✗[/red] {manifest}: {error}")
    return loader


def _spinner(quiet: bool = False) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        disable=quiet,
        transient=True,
    )


async def plan_changes(reconciler: PodReconciler, path: Path) -> List[Tuple[str, str, List[str]]]:
    """Show what apply would do for every manifest."""
    loader = _load(ManifestLoader(path, reconciler.default_namespace))
    rows = []
    for pod_id, spec in loader.pods.items():
        current = await reconciler.read(pod_id, prior=spec)
        if current is None:
            rows.append((pod_id, "create", []))
            continue
        classification = classify(current.spec, spec)
        if classification.action == ChangeAction.NO_CHANGE:
            action = "no change"
        elif classification.action == ChangeAction.IN_PLACE:
            action = "in-place"
        else:
            action = "replace"
        rows.append((pod_id, action, [render_path(p) for p in classification.changed]))

    table = Table(title="Plan")
    table.add_column("Pod", style="cyan")
    table.add_column("Action")
    table.add_column("Changed fields", style="dim")
    for pod_id, action, changed in rows:
        style = ACTION_STYLES[action]
        table.add_row(pod_id, f"[{style}]{action}[/{style}]", "\n".join(changed))
    console.print(table)

    if loader.errors:
        raise PodError(f"{len(loader.errors)} manifest(s) could not be loaded")
    return rows


async def _apply_one(reconciler: PodReconciler, spec: PodSpec) -> Tuple[str, Optional[UpdateResult], Optional[str]]:
    try:
        return spec.pod_id, await reconciler.apply(spec), None
    except PodError as e:
        logger.error(f"Failed to apply {spec.pod_id}: {e}")
        return spec.pod_id, None, str(e)


async def apply_manifests(
    reconciler: PodReconciler,
    path: Path,
    quiet: bool = False,
    loader: Optional[ManifestLoader] = None,
) -> Dict[str, Any]:
    """Apply every manifest; pods are reconciled concurrently."""
    loader = _load(loader or ManifestLoader(path, reconciler.default_namespace))
    load_errors = dict(loader.errors)
    with _spinner(quiet) as progress:
        task = progress.add_task(f"Applying {len(loader.pods)} pod(s)...", total=None)
        results = await asyncio.gather(*(_apply_one(reconciler, spec) for spec in loader.pods.values()))
        progress.update(task, completed=True)

    failures = {}
    for pod_id, result, error in results:
        if error is not None:
            failures[pod_id] = error
            console.print(f"  [red]✗[/red] {pod_id}: {error}")
        elif not quiet:
            console.print(f"[green]✓[/green] {pod_id} {_describe(result)}")

    if failures or load_errors:
        raise PodError(f"{len(failures) + len(load_errors)} pod(s) failed")
    return {pod_id: result for pod_id, result, _ in results}


def _describe(result: UpdateResult) -> str:
    if result.created:
        return "created"
    if result.replaced:
        return f"replaced (uid {result.state.uid})"
    if result.changed:
        return "updated in place"
    return "unchanged"


async def show_pod(reconciler: PodReconciler, pod_id: str, output: str = "table") -> Optional[PodState]:
    """Show the live state of a pod."""
    state = await reconciler.read(pod_id)
    if state is None:
        raise PodError("pod not found", operation="get", pod_id=pod_id)

    if output == "json":
        console.print_json(canonical_json(state.object))
    elif output == "yaml":
        console.print(dump_spec(state.spec), end="", markup=False, highlight=False)
    else:
        table = Table(title=f"Pod {state.pod_id}")
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("UID", state.uid or "-")
        table.add_row("Resource version", state.resource_version or "-")
        phase_color = "green" if state.phase == "Running" else "yellow"
        table.add_row("Phase", f"[{phase_color}]{state.phase or 'Unknown'}[/{phase_color}]")
        for condition, status in sorted(state.conditions.items()):
            marker = "[green]●[/green]" if status == "True" else "[red]○[/red]"
            table.add_row(f"Condition {condition}", marker)
        for container in state.spec.containers:
            table.add_row(f"Container {container.name}", container.image)
        console.print(table)
    return state


async def delete_pod(reconciler: PodReconciler, pod_id: str, quiet: bool = False):
    """Delete a pod and wait until it is gone."""
    with _spinner(quiet) as progress:
        task = progress.add_task(f"Deleting pod {pod_id}...", total=None)
        await reconciler.delete(pod_id)
        progress.update(task, completed=True)
    if not quiet:
        console.print(f"[green]✓[/green] Pod {pod_id} deleted")


async def import_pod(reconciler: PodReconciler, pod_id: str, output: Optional[Path] = None) -> PodSpec:
    """Write the manifest of an existing pod."""
    state = await reconciler.import_pod(pod_id)
    text = dump_spec(state.spec)
    if output is None:
        console.print(text, end="", markup=False, highlight=False)
    else:
        output.write_text(text)
        console.print(f"[green]✓[/green] Imported {pod_id} into {output}")
    return state.spec


def dump_spec(spec: PodSpec) -> str:
    """Render a pod spec as a YAML manifest."""
    data = spec.without_server_fields().model_dump(mode="json", exclude_none=True, exclude_defaults=True)
    # namespace is part of the identity, always written
    data["metadata"]["namespace"] = spec.metadata.namespace
    yaml = YAML()
    yaml.default_flow_style = False
    stream = io.StringIO()
    yaml.dump(data, stream)
    return stream.getvalue()


async def watch_manifests(
    reconciler: PodReconciler,
    path: Path,
    interval: float,
    stop_event: Optional[asyncio.Event] = None,
):
    """Apply manifests, then re-apply on file changes and check drift periodically.

    File events that leave every manifest's content unchanged are ignored.
    """
    stop_event = stop_event or asyncio.Event()
    loader = ManifestLoader(path, reconciler.default_namespace)

    async def reconcile(reason: str):
        logger.info(f"Reconciling manifests ({reason})")
        try:
            await apply_manifests(reconciler, path, quiet=True, loader=loader)
        except PodError as e:
            console.print(f"[yellow]![/yellow] {e}")

    async def drift_loop():
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                await reconcile("drift check")

    await reconcile("startup")
    drift = asyncio.create_task(drift_loop())
    try:
        async for changes in awatch(path, stop_event=stop_event):
            logger.debug(f"Manifest changes: {changes}")
            if not loader.has_changed():
                logger.debug("Manifest contents unchanged, skipping")
                continue
            await reconcile("manifests changed")
    finally:
        drift.cancel()
        try:
            await drift
        except asyncio.CancelledError:
            pass
