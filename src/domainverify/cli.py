"""domainverify CLI - Command line interface."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from domainverify import __version__
from domainverify.core.config import VerificationSettings, flatten_config, load_config_from_file

console = Console()


def _configure_logging(level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


def _settings(ctx: click.Context) -> VerificationSettings:
    return ctx.obj["settings"]


def _resolve_service_settings(
    settings: VerificationSettings, service_host: str | None, txt_key: str | None
) -> tuple[str, str]:
    effective = settings.model_copy(
        update={
            "service_host": service_host or settings.service_host,
            "txt_record_verify_key": txt_key or settings.txt_record_verify_key,
        }
    )
    try:
        return effective.require_service_settings()
    except ValueError as e:
        raise click.UsageError(f"{e} (or pass --service-host / --txt-key)") from e


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option("--storage", default=None, help="Path to domain storage file")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: from config, info)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(
    ctx: click.Context,
    config_file: str | None,
    storage: str | None,
    log_level: str | None,
    verbose: bool,
):
    """domainverify - Prove ownership of customer domains via DNS.

    Examples:

        domainverify domain register acme.io 10.0.0.1 --customer-id c1

        domainverify domain token acme.io --customer-id c1

        domainverify domain check acme.io --customer-id c1

        domainverify serve --port 4000
    """
    overrides: dict = {}
    if config_file:
        try:
            overrides = flatten_config(load_config_from_file(config_file))
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]Config error:[/red] {e}")
            sys.exit(1)
    if storage:
        overrides["storage_path"] = storage
    if log_level:
        overrides["log_level"] = log_level

    settings = VerificationSettings(**overrides)
    _configure_logging("debug" if verbose else settings.log_level)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
def version():
    """Show version information."""
    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version.split()[0]}")


@main.command()
@click.option("--host", default=None, help="Bind address (default: 0.0.0.0)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: 4000)")
@click.option("--service-host", envvar="DOMAINVERIFY_SERVICE_HOST", help="Default CNAME target")
@click.option("--txt-key", envvar="DOMAINVERIFY_TXT_RECORD_VERIFY_KEY", help="Default TXT key")
@click.pass_context
def serve(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    service_host: str | None,
    txt_key: str | None,
):
    """Run the verification HTTP API."""
    from aiohttp import web

    from domainverify.server import build_service, create_app

    settings = _settings(ctx)
    app = create_app(
        build_service(settings),
        service_host=service_host or settings.service_host,
        txt_record_verify_key=txt_key or settings.txt_record_verify_key,
    )
    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(
        f"Domain Verification Service is running on http://{bind_host}:{bind_port}",
        style="green",
    )
    web.run_app(app, host=bind_host, port=bind_port, print=None)


@main.command("config")
@click.pass_context
def show_config(ctx: click.Context):
    """Show the effective configuration."""
    console.print(json.dumps(_settings(ctx).to_display_dict(), indent=2), soft_wrap=True)


@main.group()
def domain():
    """Manage domain registrations and verification.

    Examples:

        domainverify domain register acme.io 10.0.0.1 --customer-id c1

        domainverify domain token acme.io --customer-id c1

        domainverify domain check acme.io --customer-id c1

        domainverify domain status acme.io --customer-id c1

        domainverify domain logs acme.io --customer-id c1
    """
    pass


def _run(ctx: click.Context, coro_factory):
    """Run an engine coroutine, reporting verification failures."""
    from domainverify.domains import (
        DomainVerificationError,
        DuplicateDomainError,
        StoreUnavailableError,
    )
    from domainverify.server import build_service

    service = build_service(_settings(ctx))
    try:
        return asyncio.run(coro_factory(service))
    except (DomainVerificationError, DuplicateDomainError, StoreUnavailableError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@domain.command("register")
@click.argument("domain_name")
@click.argument("ip")
@click.option("--customer-id", default=None, help="Owning customer")
@click.pass_context
def domain_register(ctx: click.Context, domain_name: str, ip: str, customer_id: str | None):
    """Register a domain or update its ip."""
    record = _run(ctx, lambda service: service.register_domain(domain_name, ip, customer_id))

    verified = "[green]Yes[/green]" if record.is_verified else "[yellow]No[/yellow]"
    console.print(
        Panel(
            f"[green]Domain registered successfully![/green]\n\n"
            f"[bold]Domain:[/bold] {record.name}\n"
            f"[bold]IP:[/bold] {record.ip}\n"
            f"[bold]Customer:[/bold] {record.customer_id or 'N/A'}\n"
            f"[bold]Verified:[/bold] {verified}\n\n"
            f"Next, run:\n"
            f"  [cyan]domainverify domain token {record.name}"
            f"{' --customer-id ' + record.customer_id if record.customer_id else ''}[/cyan]",
            title="Domain Registration",
            border_style="green",
        )
    )


@domain.command("token")
@click.argument("domain_name")
@click.option("--customer-id", required=True, help="Owning customer")
@click.option("--service-host", default=None, help="CNAME target (default: from config)")
@click.option("--txt-key", default=None, help="TXT key name (default: from config)")
@click.pass_context
def domain_token(
    ctx: click.Context,
    domain_name: str,
    customer_id: str,
    service_host: str | None,
    txt_key: str | None,
):
    """Issue a verification token and print the DNS records to publish."""
    service_host, txt_key = _resolve_service_settings(_settings(ctx), service_host, txt_key)

    async def issue(service):
        token = await service.generate_verification_token(domain_name, customer_id)
        instructions = await service.get_verification_instructions(
            domain_name, service_host, customer_id, txt_key
        )
        return token, instructions

    token, instructions = _run(ctx, issue)

    console.print(
        Panel(
            f"[bold]Token:[/bold] {token}\n\n"
            f"[yellow]Configure these DNS records:[/yellow]\n\n"
            f"1. [bold]TXT Record[/bold]\n"
            f"   Name: {instructions.txt.name}\n"
            f"   Value: {instructions.txt.value}\n\n"
            f"2. [bold]CNAME Record[/bold] (after TXT verification)\n"
            f"   Name: {instructions.cname.name}\n"
            f"   Value: {instructions.cname.value}\n\n"
            f"After configuring DNS, run:\n"
            f"  [cyan]domainverify domain check {domain_name} --customer-id {customer_id}[/cyan]",
            title="Domain Verification",
            border_style="cyan",
        )
    )


@domain.command("check")
@click.argument("domain_name")
@click.option("--customer-id", required=True, help="Owning customer")
@click.option("--service-host", default=None, help="CNAME target (default: from config)")
@click.option("--txt-key", default=None, help="TXT key name (default: from config)")
@click.pass_context
def domain_check(
    ctx: click.Context,
    domain_name: str,
    customer_id: str,
    service_host: str | None,
    txt_key: str | None,
):
    """Run the TXT and CNAME checks for a domain."""
    service_host, txt_key = _resolve_service_settings(_settings(ctx), service_host, txt_key)

    console.print(f"Verifying DNS records for [cyan]{domain_name}[/cyan]...", style="yellow")
    _run(
        ctx,
        lambda service: service.complete_domain_verification(
            domain_name, service_host, customer_id, txt_key
        ),
    )
    console.print(
        Panel(
            f"[green]Domain verified successfully![/green]\n\n"
            f"[bold]Domain:[/bold] {domain_name}\n"
            f"[bold]CNAME:[/bold] [green]Valid[/green] -> {service_host}\n"
            f"[bold]TXT:[/bold] [green]Valid[/green]",
            title="Verification Successful",
            border_style="green",
        )
    )


@domain.command("status")
@click.argument("domain_name")
@click.option("--customer-id", required=True, help="Owning customer")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def domain_status(ctx: click.Context, domain_name: str, customer_id: str, json_output: bool):
    """Show the verification state of a domain."""
    status = _run(ctx, lambda service: service.get_domain_status(domain_name, customer_id))

    if json_output:
        console.print(json.dumps(status.to_dict(), indent=2), soft_wrap=True)
        return

    color = "green" if status.is_verified else "yellow"
    console.print(
        Panel(
            f"[bold]Domain:[/bold] {status.domain}\n"
            f"[bold]IP:[/bold] {status.ip}\n"
            f"[bold]Verified:[/bold] {'Yes' if status.is_verified else 'No'}\n"
            f"[bold]Pending verification:[/bold] "
            f"{'Yes' if status.has_active_pending_verification else 'No'}\n"
            f"[bold]Updated At:[/bold] {status.updated_at.strftime('%Y-%m-%d %H:%M')}",
            title=f"Domain Status: {domain_name}",
            border_style=color,
        )
    )


@domain.command("logs")
@click.argument("domain_name")
@click.option("--customer-id", required=True, help="Owning customer")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def domain_logs(ctx: click.Context, domain_name: str, customer_id: str, json_output: bool):
    """Show the verification audit log of a domain."""
    entries = _run(
        ctx, lambda service: service.list_verification_logs(domain_name, customer_id)
    )

    if json_output:
        console.print(json.dumps([entry.to_dict() for entry in entries], indent=2), soft_wrap=True)
        return

    if not entries:
        console.print("[dim]No verification attempts recorded[/dim]")
        return

    status_colors = {"success": "green", "failed": "red", "pending": "yellow"}
    table = Table(title=f"Verification Log: {domain_name}")
    table.add_column("Time")
    table.add_column("Step", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Details", style="dim")

    for entry in entries:
        color = status_colors.get(entry.status.value, "white")
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.step.value,
            f"[{color}]{entry.status.value}[/{color}]",
            entry.details or "",
        )

    console.print(table)


@domain.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def domain_list(ctx: click.Context, json_output: bool):
    """List all registered domains."""
    records = _run(ctx, lambda service: service.store.list_all())

    if json_output:
        console.print(json.dumps([record.to_dict() for record in records], indent=2), soft_wrap=True)
        return

    if not records:
        console.print("[dim]No domains registered[/dim]")
        return

    table = Table(title="Registered Domains")
    table.add_column("Domain", style="cyan")
    table.add_column("IP")
    table.add_column("Customer", style="dim")
    table.add_column("Verified", justify="center")
    table.add_column("Pending", justify="center")

    for record in records:
        table.add_row(
            record.name,
            record.ip,
            record.customer_id or "N/A",
            "[green]Yes[/green]" if record.is_verified else "[yellow]No[/yellow]",
            "Yes" if record.has_pending_token else "No",
        )

    console.print(table)


if __name__ == "__main__":
    main()
