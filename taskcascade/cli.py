"""Command line interface for operating taskcascade workflow instances."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer

from taskcascade import CascadeCoordinator, get_executor, get_store
from taskcascade.config import CascadeConfig, load_config
from taskcascade.errors import CascadeError
from taskcascade.provisioning import provision_instance, sync_task_with_template
from taskcascade.templates import load_templates

app = typer.Typer(help="CLI for taskcascade workflow instances")

# Command groups
instance_app = typer.Typer(help="Commands for managing workflow instances")
task_app = typer.Typer(help="Commands for individual tasks")
templates_app = typer.Typer(help="Commands for task templates")

app.add_typer(instance_app, name="instance")
app.add_typer(task_app, name="task")
app.add_typer(templates_app, name="templates")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """taskcascade CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


async def _with_coordinator(config: CascadeConfig, action):
    """Build a coordinator from ``config`` and run ``action`` against it."""
    history = None
    if config.history_url:
        from taskcascade.db import CascadeHistory

        history = CascadeHistory(config.history_url)
        await history.init_db()
    executor = get_executor(config=config)
    coordinator = CascadeCoordinator(
        get_store(),
        executor,
        history=history,
        executor_timeout=config.executor.timeout,
    )
    try:
        return await action(coordinator)
    finally:
        await executor.disconnect()
        if history is not None:
            await history.close()


@instance_app.command("provision")
def instance_provision(
    instance_id: str,
    templates: Path = typer.Option(..., help="YAML file with task templates"),
    template: Optional[List[str]] = typer.Option(
        None, help="Only instantiate these template ids (repeatable)"
    ),
) -> None:
    """
    Create a workflow instance with one task per template.

    Dependency-free tasks are promoted to Actionable right away.

    Example:
        taskcascade instance provision acme-renewal-2025 --templates templates.yaml
    """
    config = load_config()
    try:
        catalog = load_templates(templates)
    except (OSError, ValueError) as exc:
        _fail(f"Cannot read templates: {exc}")

    async def action(coordinator: CascadeCoordinator):
        instance = await provision_instance(
            coordinator.store, catalog, instance_id, template_ids=template or None
        )
        return instance, await coordinator.refresh_instance(instance_id)

    try:
        instance, result = asyncio.run(_with_coordinator(config, action))
    except (CascadeError, ValueError) as exc:
        _fail(str(exc))
    typer.echo(f"Provisioned {instance_id} with {len(instance.tasks)} tasks")
    typer.echo(result.summary())


@instance_app.command("list")
def instance_list() -> None:
    """List all workflow instances in the configured store."""
    store = get_store()
    instances = asyncio.run(store.list_instances())
    if not instances:
        typer.echo("No instances found")
        return
    for instance_id in instances:
        typer.echo(instance_id)


@instance_app.command("show")
def instance_show(instance_id: str) -> None:
    """
    Show every task of an instance with its status and dependencies.

    Example:
        taskcascade instance show acme-renewal-2025
        # Output: Instance acme-renewal-2025: 3 tasks
        #         - acme-renewal-2025:1 [Completed] Collect loss runs
        #         - acme-renewal-2025:2 [Actionable] Draft submission (auto) <- 1
    """
    store = get_store()
    tasks = asyncio.run(store.load_instance_tasks(instance_id))
    if not tasks:
        typer.echo("Instance not found")
        raise typer.Exit(code=1)
    typer.echo(f"Instance {instance_id}: {len(tasks)} tasks")
    for task in tasks:
        line = f"- {task.id} [{task.status.value}] {task.name}"
        if task.auto_executable:
            line += " (auto)"
        if task.dependencies:
            line += f" <- {', '.join(task.dependencies)}"
        typer.echo(line)


@instance_app.command("refresh")
def instance_refresh(instance_id: str) -> None:
    """Promote every Upcoming task whose dependencies are already satisfied."""
    config = load_config()
    try:
        result = asyncio.run(
            _with_coordinator(config, lambda c: c.refresh_instance(instance_id))
        )
    except (CascadeError, ValueError) as exc:
        _fail(str(exc))
    typer.echo(result.summary())


@instance_app.command("history")
def instance_history(instance_id: str) -> None:
    """Show recorded cascade runs for an instance."""
    config = load_config()
    if not config.history_url:
        _fail("No history database configured (set TASKCASCADE_HISTORY_URL)")

    from taskcascade.db import CascadeHistory

    async def fetch():
        history = CascadeHistory(config.history_url)
        try:
            await history.init_db()
            return await history.list_runs(instance_id)
        finally:
            await history.close()

    runs = asyncio.run(fetch())
    if not runs:
        typer.echo("No cascade runs recorded")
        return
    for run in runs:
        origin = run.trigger_task_id or "refresh"
        typer.echo(
            f"{run.started_at}\t{origin}\tadvanced={run.advanced}\t"
            f"triggered={run.triggered}\terrors={run.errors}"
        )


@task_app.command("complete")
def task_complete(instance_id: str, task_id: str) -> None:
    """
    Mark a task completed and cascade to its dependents.

    Example:
        taskcascade task complete acme-renewal-2025 acme-renewal-2025:1
    """
    config = load_config()
    try:
        result = asyncio.run(
            _with_coordinator(config, lambda c: c.complete_task(instance_id, task_id))
        )
    except (CascadeError, ValueError) as exc:
        _fail(str(exc))
    typer.echo(f"Task {task_id} completed")
    typer.echo(result.summary())


@task_app.command("sync")
def task_sync(
    instance_id: str,
    task_id: str,
    templates: Path = typer.Option(..., help="YAML file with task templates"),
) -> None:
    """Update a task's definition fields from its template."""
    try:
        catalog = load_templates(templates)
        result = asyncio.run(
            sync_task_with_template(get_store(), catalog, instance_id, task_id)
        )
    except (CascadeError, ValueError, OSError) as exc:
        _fail(str(exc))
    if result.synced:
        typer.echo(f"Synced {task_id}: {', '.join(result.updated_fields)}")
    else:
        typer.echo(f"Skipped {task_id}: {result.skipped_reason}")


@templates_app.command("validate")
def templates_validate(path: Path) -> None:
    """Check a template file for unknown references and dependency cycles."""
    try:
        catalog = load_templates(path)
        catalog.validate()
    except (CascadeError, ValueError, OSError) as exc:
        _fail(f"Invalid templates: {exc}")
    typer.echo(f"{len(catalog)} templates OK")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
