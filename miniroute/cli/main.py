"""
SOLE RESPONSIBILITY: Defines the Typer diagnostics commands (check, use, reset, set-base-url, ...)
that inspect and change the persisted environment overrides.
"""

from typing import List, Optional, Tuple, Annotated

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

from ..core.config import Config
from ..core.errors import MinirouteError
from ..core.logger import setup_logger
from ..core.models import EnvironmentName, ResolvedConfig, RuntimeSnapshot
from ..core.environments import has_placeholder
from ..core.resolver import EnvironmentManager
from ..core.signals import DEVTOOLS_PLATFORM
from ..core.urls import is_loopback_url
from ..client.factory import create_environment, create_interceptor


app = typer.Typer(
    name="miniroute",
    help="""
🧭 [bold cyan]miniroute[/bold cyan] - environment-aware API routing for client apps

[bold blue]Diagnostics[/bold blue]
  [green]check[/green]    - Show signals, resolved environment and stored overrides
  [green]resolve[/green]  - Show where a request path would be dispatched

[bold blue]Overrides[/bold blue]
  [yellow]use[/yellow]            - Force an environment until reset
  [yellow]set-base-url[/yellow]   - Store a testing / production base URL
  [yellow]force-testing[/yellow]  - Route a device to a LAN server
  [yellow]clear-cache[/yellow]    - Drop every stored override
""",
    rich_markup_mode="rich",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

# Console for rich output
console = Console()


def version_callback(value: bool):
    """Version callback function for --version flag."""
    if value:
        from miniroute import __version__
        console.print(f"[bold green]miniroute[/bold green] v{__version__}")
        raise typer.Exit()


# Set by the --debug option on every invocation; commands read it when configuring logging
_cli_state = {"debug": False}


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
    debug: bool = typer.Option(False, "--debug", help="Log resolution details to the console"),
):
    """Inspect and change how requests are routed between environments."""
    _cli_state["debug"] = debug
    if debug:
        setup_logger(debug=True)


def configure_logging(config: Config) -> None:
    """Apply the logging section; --debug wins over a non-debug config."""
    setup_logger(
        debug=_cli_state["debug"] or config.logging.debug,
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
    )


def load_environment() -> EnvironmentManager:
    """Environment manager built from the layered configuration."""
    config = Config.load()
    configure_logging(config)
    return create_environment(config)


def fail(error: MinirouteError):
    """Print a usage error and exit 1."""
    console.print(f"[red]❌ {escape(str(error))}[/red] [dim]({escape(error.code.tag())})[/dim]")
    raise typer.Exit(1)


def diagnose(snapshot: RuntimeSnapshot, config: ResolvedConfig) -> List[Tuple[str, str]]:
    """
    (level, message) findings for a resolution: "error", "warning" or "ok".
    """
    findings: List[Tuple[str, str]] = []
    on_device = bool(snapshot.platform) and snapshot.platform != DEVTOOLS_PLATFORM
    loopback = is_loopback_url(config.base_url)

    if on_device and loopback:
        findings.append((
            "error",
            f"Device platform '{snapshot.platform}' is routed to {config.base_url}, which only exists on your "
            f"machine. Resolved as {config.env.value}; run 'miniroute force-testing <LAN IP>' "
            "or 'miniroute clear-cache'.",
        ))
    elif snapshot.platform == DEVTOOLS_PLATFORM and not loopback:
        findings.append(("warning", f"Developer tools are routed away from localhost: {config.base_url}"))

    if has_placeholder(config.base_url):
        findings.append((
            "error",
            f"Base URL {config.base_url} is a placeholder; run 'miniroute set-base-url {config.env.value} <URL>'.",
        ))

    if not findings:
        findings.append(("ok", "Environment configuration looks fine"))
    return findings


@app.command(
    help="""
[bold yellow]Diagnose environment resolution[/bold yellow]

Prints host signals, the resolved environment, the manual override,
stored base URLs and any routing problems found.
"""
)
def check(
    production: bool = typer.Option(False, "--production", "-p", help="Resolve as a production build"),
):
    """Show the resolved environment and stored overrides."""
    environment = load_environment()
    snapshot = environment.get_runtime_snapshot(production)
    config = environment.get_env_config(production)

    signals = Table(title="Host Signals")
    signals.add_column("Signal", style="cyan")
    signals.add_column("Value", style="green")
    signals.add_row("platform", snapshot.platform or "-")
    signals.add_row("environment", snapshot.environment or "-")
    signals.add_row("channel", snapshot.channel or "-")
    console.print(signals)

    resolved = Table(title="Resolved Environment")
    resolved.add_column("Field", style="cyan")
    resolved.add_column("Value", style="green")
    resolved.add_row("Environment", config.env.value)
    resolved.add_row("Description", config.description or "-")
    resolved.add_row("Base URL", config.base_url)
    resolved.add_row("API root", config.api_root or "-")
    resolved.add_row("Manual override", snapshot.manual_env.value if snapshot.manual_env else "none")
    resolved.add_row("Override applied", "yes" if config.override_applied else "no")
    console.print(resolved)

    stored = Table(title="Stored Base URLs")
    stored.add_column("Environment", style="cyan")
    stored.add_column("Base URL", style="green")
    stored.add_row(EnvironmentName.TESTING.value, snapshot.testing_base_url or "none")
    stored.add_row(EnvironmentName.PRODUCTION.value, snapshot.production_base_url or "none")
    console.print(stored)

    styles = {"error": ("red", "❌"), "warning": ("yellow", "⚠"), "ok": ("green", "✓")}
    lines = []
    for level, message in diagnose(snapshot, config):
        color, icon = styles[level]
        lines.append(f"[{color}]{icon} {escape(message)}[/{color}]")
    console.print(Panel("\n".join(lines), title="Diagnosis", border_style="blue"))


@app.command(help="Force an environment (development, testing, production) until [cyan]reset[/cyan].")
def use(
    env: Annotated[str, typer.Argument(help="Environment name or alias (dev, test, prod)", metavar="ENV")],
):
    """Persist a manual environment."""
    environment = load_environment()
    try:
        normalized = environment.set_manual_environment(env)
    except MinirouteError as e:
        fail(e)
    console.print(f"[green]✓ Environment forced to {normalized.value}[/green]")
    console.print(f"[dim]Base URL: {environment.get_base_url()}[/dim]")


@app.command(help="Remove the manual environment; signals decide again.")
def reset():
    """Clear the manual environment."""
    environment = load_environment()
    environment.clear_manual_environment()
    console.print("[green]✓ Manual environment cleared[/green]")
    console.print(f"[dim]Resolved environment: {environment.resolve_environment().value}[/dim]")


@app.command("set-base-url", help="Store a base URL override for [cyan]testing[/cyan] or [cyan]production[/cyan].")
def set_base_url(
    env: Annotated[str, typer.Argument(help="testing or production", metavar="ENV")],
    url: Annotated[str, typer.Argument(help="Base URL, e.g. 192.168.1.10:8080/app/", metavar="URL")],
):
    """Persist a base URL override."""
    environment = load_environment()
    try:
        stored = environment.set_environment_base_url(env, url)
    except MinirouteError as e:
        fail(e)
    console.print(f"[green]✓ Base URL stored:[/green] {stored}")


@app.command("clear-base-url", help="Drop the stored base URL for an environment.")
def clear_base_url(
    env: Annotated[str, typer.Argument(help="testing or production", metavar="ENV")],
):
    """Remove a base URL override."""
    environment = load_environment()
    environment.clear_environment_base_url(env)
    console.print(f"[green]✓ Base URL override for {env} cleared[/green]")


@app.command("clear-cache", help="Remove the manual environment and both stored base URLs.")
def clear_cache():
    """Remove every persisted override."""
    environment = load_environment()
    environment.clear_all()
    console.print("[green]✓ All stored overrides cleared[/green]")


@app.command("force-testing", help="Force the testing environment, optionally pointing it at a LAN server.")
def force_testing(
    ip: Annotated[Optional[str], typer.Argument(help="LAN address of the development server", metavar="IP")] = None,
    port: int = typer.Option(8080, "--port", help="Server port"),
):
    """Persist testing as the manual environment."""
    environment = load_environment()
    if ip:
        api_root = environment.registry.get(EnvironmentName.TESTING).api_root
        try:
            stored = environment.set_environment_base_url(EnvironmentName.TESTING, f"http://{ip}:{port}/{api_root}")
        except MinirouteError as e:
            fail(e)
        console.print(f"[green]✓ Testing base URL stored:[/green] {stored}")
    environment.set_manual_environment(EnvironmentName.TESTING)
    console.print("[green]✓ Environment forced to testing[/green]")
    console.print(f"[dim]Base URL: {environment.get_base_url()}[/dim]")


@app.command(help="Show the URL a request for PATH would be dispatched to.")
def resolve(
    path: Annotated[str, typer.Argument(help="Request path or URL", metavar="PATH")],
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Per-request base URL"),
    production: bool = typer.Option(False, "--production", "-p", help="Resolve as a production build"),
):
    """Print the dispatched URL."""
    config = Config.load()
    configure_logging(config)
    interceptor = create_interceptor(config)
    if production:
        interceptor.set_production(True)
    console.print(interceptor.resolve_url(path, base), markup=False, highlight=False, soft_wrap=True)


# Entry point function for setuptools/pip
def cli_entry():
    """Entry point for the CLI executable."""
    app()


if __name__ == "__main__":
    app()
