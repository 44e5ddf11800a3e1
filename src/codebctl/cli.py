"""Typer-powered command line interface for ``codebctl``.

Every registry command follows the same shape: resolve configuration, open
an operation scope in the structured log, take the per-host lock when the
command mutates state, load the remote registry, compute the new registry
in memory, and save it only once every validation step has passed.
"""
from __future__ import annotations

import textwrap
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import NoReturn, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .errors import CodebError
from .exit_codes import ExitCode
from .locking import LockManager, LockTimeoutError
from .logging import OperationScope, StructuredLogger
from .ports import used_ports, validate_registry
from .previews import (
    PreviewOptions,
    create_preview,
    list_previews,
    preview_key,
    promote_preview,
    remove_preview,
)
from .projects import (
    STAGING_ENV,
    ProjectOptions,
    ProjectPatch,
    add_project,
    get_project,
    list_projects,
    previews_for,
    remove_project,
    update_project,
)
from .providers import ContainerStatusProvider
from .reconcile import sync_with_live_state
from .remote import RemoteExecutor
from .state import DeploymentStatus, Registry, RegistryStore, format_timestamp

console = Console()

T = TypeVar("T")

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to codebctl's YAML config file.",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit structured JSON instead of tables.",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        CodeB server registry CLI.

        Manages the registry document on the deployment host: projects, their
        staging/production slots, port allocation and preview deployments.
        """
    ).strip(),
)
registry_app = typer.Typer(help="Manage projects, ports and previews in the server registry.")
preview_app = typer.Typer(help="Manage short-lived preview deployments.")
config_app = typer.Typer(help="Inspect the effective configuration.")

app.add_typer(registry_app, name="registry")
app.add_typer(config_app, name="config")
registry_app.add_typer(preview_app, name="preview")


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    executor: RemoteExecutor
    store: RegistryStore
    containers: ContainerStatusProvider
    locks: LockManager
    logger: StructuredLogger


def _build_executor(config: AppConfig) -> RemoteExecutor:
    return RemoteExecutor.from_config(config.server)


def _ensure_runtime(
    ctx: typer.Context,
    config_file: Path | None,
    lock_timeout_override: float | None = None,
) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    overrides: dict[str, object] = {}
    if lock_timeout_override is not None:
        overrides["lock_timeout"] = lock_timeout_override

    try:
        config = load_config(config_file=config_file, overrides=overrides)
    except ConfigError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        raise typer.Exit(code=ExitCode.ENVIRONMENT) from exc

    executor = _build_executor(config)
    ctx.call_on_close(executor.close)
    runtime = RuntimeContext(
        config=config,
        executor=executor,
        store=RegistryStore(
            executor=executor,
            path=config.server.registry_path,
            read_timeout=config.server.read_timeout,
            optimistic_lock=config.registry.optimistic_lock,
        ),
        containers=ContainerStatusProvider(executor),
        locks=LockManager(config.runtime_dir, config.lock_timeout),
        logger=StructuredLogger(config.logs_dir),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.find_object(RuntimeContext)
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the codebctl version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    lock_timeout: float | None = typer.Option(
        None,
        "--lock-timeout",
        help="Override lock acquisition timeout in seconds.",
    ),
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"codebctl {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file, lock_timeout)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------
def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = ExitCode.VALIDATION,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{message}[/red]")
    op.error(message, errors=list(errors or [message]), rc=int(rc))
    raise typer.Exit(code=int(rc))


@contextmanager
def _registry_errors(op: OperationScope) -> Iterator[None]:
    """Translate registry failures into exit codes."""
    try:
        yield
    except CodebError as exc:
        _command_error(op, str(exc), rc=exc.exit_code)
    except LockTimeoutError as exc:
        _command_error(op, str(exc), rc=ExitCode.ENVIRONMENT)
    except ValueError as exc:
        _command_error(op, str(exc), rc=ExitCode.VALIDATION)


def _load(runtime: RuntimeContext, op: OperationScope) -> Registry:
    registry = runtime.store.load()
    op.add_step("registry.load", detail=runtime.config.server.registry_path)
    return registry


def _mutate(
    runtime: RuntimeContext,
    op: OperationScope,
    mutate: Callable[[Registry], tuple[Registry, T]],
    *,
    save: bool = True,
) -> tuple[Registry, T]:
    """Run one load → mutate → save cycle under the per-host lock."""
    with runtime.locks.registry_lock(runtime.config.server.host) as handle:
        op.set_lock_wait_ms(handle.wait_ms)
        registry = _load(runtime, op)
        updated, result = mutate(registry)
        if not save:
            op.add_step("registry.save", status="skipped")
            return updated, result
        saved = runtime.store.save(updated)
        op.add_step("registry.save", detail=f"version {saved.version}")
        return saved, result


def _now() -> datetime:
    return datetime.now(UTC)


def _status_label(status: DeploymentStatus) -> str:
    if status is DeploymentStatus.RUNNING:
        return "[green]running[/green]"
    if status is DeploymentStatus.STOPPED:
        return "[red]stopped[/red]"
    return "[yellow]pending[/yellow]"


def _project_payload(registry: Registry, name: str) -> dict[str, object]:
    project = get_project(registry, name)
    return {
        "name": name,
        **project.to_dict(),
        "previews": [
            {"key": preview.key, **preview.to_dict()} for preview in previews_for(registry, name)
        ],
    }


def _print_mapping(title: str, data: Mapping[str, object]) -> None:
    table = Table(show_header=False, title=title)
    for key, value in data.items():
        table.add_row(key, "-" if value in (None, "") else str(value))
    console.print(table)


# ----------------------------------------------------------------------
# config
# ----------------------------------------------------------------------
@config_app.command("show")
def config_show(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Display the effective configuration after merges."""
    runtime = _get_runtime(ctx)
    data = runtime.config.to_dict()

    with runtime.logger.operation(
        "config show",
        args={"json": json_output},
        target={"kind": "config"},
    ) as op:
        if json_output:
            console.print_json(data=data)
            op.success("Rendered configuration as JSON.")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in data.items():
            if isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    table.add_row(f"{key}.{sub_key}", str(sub_value))
            else:
                table.add_row(key, str(value))
        console.print(table)
        op.success("Rendered configuration table.")


# ----------------------------------------------------------------------
# registry: read-only commands
# ----------------------------------------------------------------------
@registry_app.command("list")
def registry_list(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """List registered projects (one row per environment) and previews."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry list",
        args={"json": json_output},
        target={"kind": "registry"},
    ) as op:
        with _registry_errors(op):
            registry = _load(runtime, op)
        rows = list_projects(registry)
        previews = list_previews(registry, now=_now())

        if json_output:
            console.print_json(
                data={
                    "projects": [row.to_dict() for row in rows],
                    "previews": [row.to_dict() for row in previews],
                }
            )
            op.success("Reported registry as JSON.")
            return

        if not rows:
            console.print("[yellow]No projects registered.[/yellow]")
        else:
            table = Table(show_header=True, header_style="bold magenta", title="Projects")
            table.add_column("Project", style="bold")
            table.add_column("Env")
            table.add_column("Port")
            table.add_column("Domain")
            table.add_column("Status")
            for row in rows:
                table.add_row(
                    row.name,
                    row.env,
                    str(row.config.port),
                    row.config.domain or "-",
                    _status_label(row.config.status),
                )
            console.print(table)

        if previews:
            table = Table(show_header=True, header_style="bold magenta", title="Previews")
            table.add_column("Project", style="bold")
            table.add_column("Build")
            table.add_column("Port")
            table.add_column("URL")
            table.add_column("Expires")
            for item in previews:
                preview = item.preview
                expires = format_timestamp(preview.expires_at)
                table.add_row(
                    preview.project,
                    preview.build,
                    str(preview.port),
                    preview.url,
                    f"[red]{expires} (expired)[/red]" if item.expired else expires,
                )
            console.print(table)
        op.success("Reported registry.", context={"projects": len(registry.projects)})


@registry_app.command("show")
def registry_show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project to display."),
    json_output: bool = JSON_OPTION,
) -> None:
    """Show one project, its environments and its previews."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry show",
        args={"name": name, "json": json_output},
        target={"kind": "project", "name": name},
    ) as op:
        with _registry_errors(op):
            registry = _load(runtime, op)
            payload = _project_payload(registry, name)
        project = registry.projects[name]

        if json_output:
            console.print_json(data=payload)
            op.success("Displayed project as JSON.")
            return

        _print_mapping(
            f"Project {name}",
            {
                "Created": format_timestamp(project.created_at),
                "Updated": format_timestamp(project.updated_at) if project.updated_at else None,
                "Type": project.type.value,
                "Git": project.git_repo,
            },
        )
        table = Table(show_header=True, header_style="bold magenta", title="Environments")
        table.add_column("Env", style="bold")
        table.add_column("Port")
        table.add_column("Domain")
        table.add_column("Container")
        table.add_column("Status")
        for env, config in project.environments.items():
            table.add_row(
                env,
                str(config.port),
                config.domain or "-",
                config.container or "-",
                _status_label(config.status),
            )
        console.print(table)

        for preview in previews_for(registry, name):
            console.print(f"  preview {preview.key}: {preview.url} (port {preview.port})")
        op.success("Displayed project.")


@registry_app.command("ports")
def registry_ports(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Report reserved ports, allocation ranges and ports in use."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry ports",
        args={"json": json_output},
        target={"kind": "ports"},
    ) as op:
        with _registry_errors(op):
            registry = _load(runtime, op)
        usages = used_ports(registry)
        problems = validate_registry(registry)
        allocation = registry.ports

        if json_output:
            console.print_json(
                data={
                    **allocation.to_dict(),
                    "used": [usage.to_dict() for usage in usages],
                    "problems": problems,
                }
            )
        else:
            reserved = Table(show_header=True, header_style="bold magenta", title="Reserved")
            reserved.add_column("Port")
            reserved.add_column("Service")
            for port, service in sorted(allocation.reserved.items()):
                reserved.add_row(str(port), service)
            console.print(reserved)

            ranges = Table(show_header=True, header_style="bold magenta", title="Ranges")
            ranges.add_column("Env")
            ranges.add_column("Range")
            ranges.add_column("Next")
            for env in sorted(set(allocation.range) | set(allocation.next_available)):
                next_port = allocation.next_available.get(env)
                ranges.add_row(
                    env,
                    allocation.range.get(env, "-"),
                    "-" if next_port is None else str(next_port),
                )
            console.print(ranges)

            used = Table(show_header=True, header_style="bold magenta", title="In use")
            used.add_column("Port")
            used.add_column("Project")
            used.add_column("Env")
            for usage in usages:
                used.add_row(str(usage.port), usage.project, usage.env)
            console.print(used)

            for problem in problems:
                console.print(f"[yellow]{problem}[/yellow]")

        if problems:
            op.warning("Reported ports with conflicts.", warnings=problems)
        else:
            op.success("Reported ports.", context={"used": len(usages)})


# ----------------------------------------------------------------------
# registry: mutating commands
# ----------------------------------------------------------------------
@registry_app.command("add")
def registry_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name (lowercase DNS label)."),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        min=1,
        max=65435,
        help="Use this production port (staging gets port + 100) instead of the counters.",
    ),
    project_type: str = typer.Option("nodejs", "--type", help="nodejs|nextjs|remix|static."),
    git: str | None = typer.Option(None, "--git", help="Git repository URL."),
    domain: str | None = typer.Option(
        None,
        "--domain",
        "-d",
        help="Base domain for the generated hostnames (defaults to config base_domain).",
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """Register a project with staging and production environments."""
    runtime = _get_runtime(ctx)
    options = ProjectOptions(
        port=port,
        type=project_type,
        git_repo=git,
        base_domain=domain or runtime.config.base_domain,
    )
    with runtime.logger.operation(
        "registry add",
        args={"name": name, "port": port, "type": project_type, "git": git, "domain": domain},
        target={"kind": "project", "name": name},
    ) as op:
        with _registry_errors(op):
            saved, _ = _mutate(
                runtime,
                op,
                lambda registry: (add_project(registry, name, options, now=_now()), None),
            )
        project = saved.projects[name.strip()]
        if port is not None:
            op.add_step("ports.override", status="warning", detail="explicit port not checked")

        if json_output:
            console.print_json(data={"name": project.name, **project.to_dict()})
        else:
            console.print(f"[green]Project '{project.name}' registered.[/green]")
            for env, config in project.environments.items():
                console.print(f"  {env}: port {config.port}, domain {config.domain}")
        if port is not None:
            op.warning(
                "Project registered with an explicit port.",
                warnings=[f"Port {port} was assigned without a collision check."],
                changed=1,
            )
        else:
            op.success("Project registered.", changed=1)


@registry_app.command("update")
def registry_update(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project to update."),
    git: str | None = typer.Option(None, "--git", help="New Git repository URL."),
    project_type: str | None = typer.Option(None, "--type", help="nodejs|nextjs|remix|static."),
    status: str | None = typer.Option(
        None, "--status", help="pending|running|stopped (requires --env)."
    ),
    domain: str | None = typer.Option(None, "--domain", "-d", help="Hostname (requires --env)."),
    env: str | None = typer.Option(None, "--env", "-e", help="Environment to update."),
    json_output: bool = JSON_OPTION,
) -> None:
    """Update project metadata or one environment's status/domain."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry update",
        args={
            "name": name,
            "git": git,
            "type": project_type,
            "status": status,
            "domain": domain,
            "env": env,
        },
        target={"kind": "project", "name": name, "env": env},
    ) as op:
        if (status or domain) and not env:
            _command_error(op, "--status and --domain require --env.")
        patch = ProjectPatch(git_repo=git, type=project_type, env=env, status=status, domain=domain)
        with _registry_errors(op):
            saved, _ = _mutate(
                runtime,
                op,
                lambda registry: (update_project(registry, name, patch, now=_now()), None),
            )
        project = saved.projects[name]
        if env and env not in project.environments:
            op.add_step("environment.lookup", status="skipped", detail=f"unknown env {env}")

        if json_output:
            console.print_json(data={"name": name, **project.to_dict()})
        else:
            console.print(f"[green]Project '{name}' updated.[/green]")
        op.success("Project updated.", changed=1)


@registry_app.command("remove")
def registry_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project to remove."),
    force: bool = typer.Option(False, "--force", help="Skip the confirmation prompt."),
    json_output: bool = JSON_OPTION,
) -> None:
    """Remove a project and every preview it owns."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry remove",
        args={"name": name, "force": force},
        target={"kind": "project", "name": name},
    ) as op:
        if not force and not typer.confirm(
            f"Remove project '{name}' and its previews from the registry?", default=False
        ):
            _command_error(op, "Aborted.", rc=ExitCode.VALIDATION)

        with _registry_errors(op):
            _, removed = _mutate(runtime, op, lambda registry: remove_project(registry, name))

        if json_output:
            console.print_json(data={"removed": name, "previews": removed})
        else:
            console.print(f"[yellow]Project '{name}' removed.[/yellow]")
            for key in removed:
                console.print(f"  preview {key} removed")
        op.success("Project removed.", changed=1 + len(removed), context={"previews": removed})


@registry_app.command("sync")
def registry_sync(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Report the changes without writing the registry.",
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """Align statuses with running containers and drop expired previews."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry sync",
        args={"dry_run": dry_run},
        target={"kind": "registry"},
    ) as op:
        with _registry_errors(op):
            with runtime.locks.registry_lock(runtime.config.server.host) as handle:
                op.set_lock_wait_ms(handle.wait_ms)
                registry = _load(runtime, op)
                listing = runtime.containers.list_containers()
                if listing.available:
                    op.add_step("containers.list", detail=f"{len(listing.containers)} containers")
                else:
                    op.add_step("containers.list", status="warning", detail=listing.error)
                updated, changes = sync_with_live_state(
                    registry, listing.running_names(), now=_now()
                )
                if dry_run or changes == 0:
                    op.add_step(
                        "registry.save",
                        status="skipped",
                        detail="dry-run" if dry_run else "no changes",
                    )
                else:
                    saved = runtime.store.save(updated)
                    op.add_step("registry.save", detail=f"version {saved.version}")

        if json_output:
            console.print_json(data={"changed": changes, "dry_run": dry_run})
        elif dry_run:
            console.print(f"[yellow]Dry run[/yellow]: {changes} change(s) would be written.")
        else:
            console.print(f"[green]{changes} change(s) applied.[/green]")
        op.success("Registry synchronised.", changed=0 if dry_run else changes)


@registry_app.command("promote")
def registry_promote(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Preview key (<project>-<build>)."),
    target: str = typer.Option(STAGING_ENV, "--to", help="Environment to promote into."),
    json_output: bool = JSON_OPTION,
) -> None:
    """Plan the promotion of a preview build into a permanent environment."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry promote",
        args={"key": key, "to": target},
        target={"kind": "preview", "key": key},
    ) as op:
        with _registry_errors(op):
            registry = _load(runtime, op)
            plan = promote_preview(registry, key, target)

        if json_output:
            console.print_json(data=plan.to_dict())
        else:
            _print_mapping(
                "Promotion plan",
                {
                    "Source": plan.preview_key,
                    "Build": plan.build,
                    "Target": f"{plan.project} / {plan.environment}",
                    "Domain": plan.domain,
                },
            )
            console.print(f"Run: [bold]{plan.command}[/bold]")
        op.success("Promotion planned.", context=plan.to_dict())


# ----------------------------------------------------------------------
# registry preview
# ----------------------------------------------------------------------
@preview_app.command("create")
def preview_create(
    ctx: typer.Context,
    project: str = typer.Option(..., "--project", help="Registered project name."),
    build: str | None = typer.Option(None, "--build", help="Build identifier."),
    pr: str | None = typer.Option(None, "--pr", help="Pull request number."),
    branch: str | None = typer.Option(None, "--branch", help="Source branch."),
    ttl: int | None = typer.Option(
        None,
        "--ttl",
        min=1,
        help="Lifetime in hours (defaults to config preview_ttl_hours, 72).",
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """Register a preview deployment for a build or pull request."""
    runtime = _get_runtime(ctx)
    ttl_hours = ttl if ttl is not None else runtime.config.preview_ttl_hours
    options = PreviewOptions(build=build, pr=pr, branch=branch, ttl_hours=ttl_hours)
    with runtime.logger.operation(
        "registry preview create",
        args={"project": project, "build": build, "pr": pr, "branch": branch, "ttl": ttl_hours},
        target={"kind": "preview", "project": project},
    ) as op:
        with _registry_errors(op):
            _, preview = _mutate(
                runtime,
                op,
                lambda registry: create_preview(
                    registry,
                    project,
                    options,
                    now=_now(),
                    default_domain=runtime.config.base_domain,
                ),
            )

        if json_output:
            console.print_json(data={"key": preview.key, **preview.to_dict()})
        else:
            console.print(f"[green]Preview '{preview.key}' created.[/green]")
            console.print(f"  port {preview.port}, url {preview.url}")
            console.print(f"  expires {format_timestamp(preview.expires_at)} ({ttl_hours}h)")
        op.success("Preview created.", changed=1, context={"key": preview.key})


@preview_app.command("list")
def preview_list(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """List preview deployments and whether they have expired."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "registry preview list",
        args={"json": json_output},
        target={"kind": "preview"},
    ) as op:
        with _registry_errors(op):
            registry = _load(runtime, op)
        rows = list_previews(registry, now=_now())

        if json_output:
            console.print_json(data={"previews": [row.to_dict() for row in rows]})
            op.success("Reported previews as JSON.")
            return

        if not rows:
            console.print("[yellow]No active previews.[/yellow]")
            op.success("Reported previews.")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Key", style="bold")
        table.add_column("Project")
        table.add_column("Build")
        table.add_column("Branch")
        table.add_column("Port")
        table.add_column("URL")
        table.add_column("State")
        for row in rows:
            preview = row.preview
            table.add_row(
                preview.key,
                preview.project,
                preview.build,
                preview.branch or "-",
                str(preview.port),
                preview.url,
                "[red]expired[/red]" if row.expired else "[green]active[/green]",
            )
        console.print(table)
        op.success("Reported previews.")


@preview_app.command("remove")
def preview_remove(
    ctx: typer.Context,
    key: str | None = typer.Option(None, "--key", help="Preview key."),
    project: str | None = typer.Option(None, "--project", help="Project (with --build)."),
    build: str | None = typer.Option(None, "--build", help="Build (with --project)."),
    json_output: bool = JSON_OPTION,
) -> None:
    """Remove a preview deployment from the registry."""
    runtime = _get_runtime(ctx)
    resolved = key or (preview_key(project, build) if project and build else None)
    with runtime.logger.operation(
        "registry preview remove",
        args={"key": key, "project": project, "build": build},
        target={"kind": "preview", "key": resolved},
    ) as op:
        if resolved is None:
            _command_error(op, "Provide --key, or both --project and --build.")

        with _registry_errors(op):
            _mutate(runtime, op, lambda registry: (remove_preview(registry, resolved), None))

        if json_output:
            console.print_json(data={"removed": resolved})
        else:
            console.print(f"[yellow]Preview '{resolved}' removed.[/yellow]")
        op.success("Preview removed.", changed=1)


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "main"]
