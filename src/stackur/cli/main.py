"""Command line entry point for a stack definition script."""

import asyncio
import sys
from typing import Callable, NoReturn, Optional, Sequence

import click
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from stackur.config.models import Settings
from stackur.config.parser import DEFAULT_CONFIG_PATH, ConfigValidationError, load_settings
from stackur.stack import Stack
from stackur.utils.errors import DeploymentError, error_handler
from stackur.utils.logging import setup_logging

console = Console()

StackFactory = Callable[[Settings], Stack]


def load_config(config_path: str) -> Settings:
    """Load and validate configuration file."""
    try:
        return load_settings(config_path)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e), markup=False)
        sys.exit(1)


def fail(error: Exception) -> NoReturn:
    """Report an error and exit non-zero."""
    error = error_handler.handle_exception(error)
    error_handler.log_error(error)
    console.print(f"[red]{escape(error.to_user_message())}[/red]")
    sys.exit(1)


def run_async(awaitable):
    """Run a stack coroutine, reporting failures and exiting non-zero."""
    try:
        return asyncio.run(awaitable)
    except (DeploymentError, ClientError, BotoCoreError) as e:
        fail(e)


def get_stack(ctx: click.Context) -> Stack:
    """Build the stack once per invocation."""
    if "stack" not in ctx.obj:
        try:
            ctx.obj["stack"] = ctx.obj["factory"](ctx.obj["settings"])
        except DeploymentError as e:
            fail(e)
    return ctx.obj["stack"]


def print_physical_ids(stack: Stack) -> None:
    """Show logical -> physical ids of the deployed resources."""
    physical_ids = stack.physical_ids()
    if not physical_ids:
        console.print("[dim]No deployed resources[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Logical ID", style="cyan")
    table.add_column("Physical ID", style="white")

    for logical_id, physical_id in physical_ids.items():
        table.add_row(logical_id, physical_id)

    console.print(table)


def build_cli(stack_factory: StackFactory) -> click.Group:
    """Create the command group for a stack.

    Args:
        stack_factory: Builds the stack from the loaded settings

    Returns:
        Click group; running it without a command commits the stack
    """

    @click.group(invoke_without_command=True)
    @click.option('--config', 'config_path', default=DEFAULT_CONFIG_PATH, help='Path to configuration file')
    @click.option('--profile', help='AWS profile to use')
    @click.option('--region', help='AWS region')
    @click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']))
    @click.pass_context
    def cli(ctx, config_path, profile, region, log_level):
        """Deploy or tear down a stack with CloudFormation change sets."""
        ctx.ensure_object(dict)

        settings = load_config(config_path)
        if profile:
            settings.aws.profile = profile
        if region:
            settings.aws.region = region

        setup_logging(log_level or settings.logging.level, settings.logging.log_dir)

        ctx.obj['settings'] = settings
        ctx.obj['factory'] = stack_factory

        if ctx.invoked_subcommand is None:
            ctx.invoke(commit, interactive=None)

    @cli.command()
    @click.option('--interactive/--no-interactive', default=None,
                  help='Confirm each change set before executing it')
    @click.pass_context
    def commit(ctx, interactive):
        """Create or update the stack."""
        stack = get_stack(ctx)
        if interactive is not None:
            stack.interactive = interactive

        console.print(Panel.fit(
            f"[bold]Committing {stack.name}[/bold]\n"
            f"Interactive: {'enabled' if stack.interactive else 'disabled'}",
            title="Commit",
            border_style="cyan"
        ))

        run_async(stack.commit())

        console.print(Panel.fit(
            f"[green]Stack {stack.name} committed[/green]",
            title="Commit Complete",
            border_style="green"
        ))
        print_physical_ids(stack)

    @cli.command()
    @click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
    @click.pass_context
    def uncommit(ctx, yes):
        """Empty containers and delete the whole stack."""
        stack = get_stack(ctx)

        console.print(Panel.fit(
            f"[bold red]WARNING: This will delete stack {stack.name} and every resource in it[/bold red]",
            title="Uncommit",
            border_style="red"
        ))

        if not yes and not click.confirm("Are you sure you want to delete this stack?", default=False):
            console.print("[yellow]Uncommit cancelled[/yellow]")
            return

        run_async(stack.uncommit())
        console.print(f"[green]Deleted stack {stack.name}[/green]")

    @cli.command()
    @click.pass_context
    def template(ctx):
        """Print the CloudFormation template without deploying it."""
        stack = get_stack(ctx)
        body = run_async(stack.synthesize())
        console.print(Syntax(body, "json"))

    @cli.command()
    @click.pass_context
    def status(ctx):
        """Show whether the stack exists and its physical ids."""
        stack = get_stack(ctx)

        if stack.client_manager is not None:
            try:
                credentials = stack.client_manager.validate_credentials()
            except DeploymentError as e:
                fail(e)
            console.print(f"Account {credentials.account_id} as {credentials.principal_name} "
                          f"in {credentials.region}")

        run_async(stack.engine.initialize())

        state = "[green]deployed[/green]" if stack.engine.exists else "[yellow]not deployed[/yellow]"
        console.print(f"Stack {stack.name}: {state}")
        print_physical_ids(stack)

    return cli


def run(stack_factory: StackFactory, args: Optional[Sequence[str]] = None) -> None:
    """Parse ``args`` (defaults to sys.argv) and run the matching command."""
    build_cli(stack_factory)(args=list(args) if args is not None else None, prog_name='stackur')
