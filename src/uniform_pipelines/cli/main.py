"""Main CLI entry point."""

import json
import sys
from functools import partial
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from uniform_pipelines.cleanup.deleter import BatchStackDeleter
from uniform_pipelines.cleanup.detector import OldPipelineDetector
from uniform_pipelines.cleanup.models import PipelineStackPair, ProgressStatus
from uniform_pipelines.cleanup.workflow import CleanupWorkflow
from uniform_pipelines.clients.cloudformation import CloudFormationGateway
from uniform_pipelines.clients.codepipeline import CodePipelineGateway
from uniform_pipelines.config.parser import DEVOPS_ENVIRONMENT_KEY, Config, ConfigValidationError
from uniform_pipelines.macros.changeset_renamer import ChangesetRenamer
from uniform_pipelines.macros.role_reassigner import RoleReassigner
from uniform_pipelines.pipeline.planner import ContainedStack, DeploymentPlanner, has_postman_spec
from uniform_pipelines.pipeline.template import PipelineTemplateBuilder
from uniform_pipelines.utils.aws_client import AWSClientManager
from uniform_pipelines.utils.errors import ConfigurationError, ErrorContext, error_handler
from uniform_pipelines.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = 'uniform-pipelines.yaml'


@click.group()
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--config', 'config_path', default=DEFAULT_CONFIG_PATH, help='Path to configuration file')
@click.pass_context
def cli(ctx, profile, region, log_level, config_path):
    """Uniform pipelines: release pipeline synthesis and cleanup."""
    ctx.ensure_object(dict)
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region
    ctx.obj['config_path'] = config_path

    setup_logging(log_level)


def load_config(config_path: str) -> Config:
    """Load and validate configuration file."""
    try:
        return Config(config_path).load()
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Configuration file not found: {config_path}")
        sys.exit(1)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(1)


def fail(error: Exception, operation: str) -> None:
    """Report an error through the error handler and exit."""
    pipeline_error = error_handler.handle_exception(error, ErrorContext(operation=operation))
    error_handler.log_error(pipeline_error)
    console.print(f"[red]Error:[/red] {pipeline_error.to_user_message()}")
    sys.exit(1)


def client_manager(ctx) -> AWSClientManager:
    return AWSClientManager(profile=ctx.obj.get('profile'), region=ctx.obj.get('region'))


def print_pairs(status: ProgressStatus[PipelineStackPair], title: str) -> None:
    table = Table(title=title)
    table.add_column('Pipeline', style='cyan')
    table.add_column('Stack', style='magenta')
    for pair in status.units_of_work:
        table.add_row(pair.pipeline_name, pair.stack_name)
    console.print(table)


@cli.command()
@click.option('--stack-name', required=True, help='Name of the contained stack')
@click.option('--stack-version', required=True, help='Semantic version of the contained stack')
@click.option('--base-dir', default='.', type=click.Path(file_okay=False), help='Contained stack directory')
@click.option('--source-bucket', help='Bucket holding the contained stack sources')
@click.option('--artifact-bucket', help='Pipeline artifact bucket')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the rendered template to this file')
@click.pass_context
def plan(ctx, stack_name, stack_version, base_dir, source_bucket, artifact_bucket, output):
    """Show the inner pipeline stages for a contained stack."""
    cfg = load_config(ctx.obj['config_path'])
    try:
        planner = DeploymentPlanner(cfg.environments.resolve, partial(has_postman_spec, base_dir))
        definition = planner.build_pipeline(cfg.deployment_plan, ContainedStack(stack_name, stack_version))

        table = Table(title=f"Pipeline {definition.pipeline_name}")
        table.add_column('Stage', style='cyan')
        table.add_column('Account')
        table.add_column('Region')
        table.add_column('Approval')
        table.add_column('Smoke test')
        for stage in definition.stages:
            table.add_row(
                stage.stage_name,
                stage.target_environment.account_id,
                stage.target_environment.region,
                '[yellow]yes[/yellow]' if stage.has_approval_gate else 'no',
                '[green]yes[/green]' if stage.has_smoke_test else 'no',
            )
        console.print(table)

        if definition.disabled_transitions:
            console.print('\n[bold]Disabled transitions:[/bold]')
            for transition in definition.disabled_transitions:
                console.print(f"  [yellow]-[/yellow] {transition.stage_name}: {transition.reason}")

        if output:
            home_region = ctx.obj.get('region') or cfg.get_environment(DEVOPS_ENVIRONMENT_KEY).region
            if not source_bucket or not artifact_bucket:
                raise ConfigurationError(
                    "--source-bucket and --artifact-bucket are required with --output"
                )
            builder = PipelineTemplateBuilder(
                source_bucket, artifact_bucket, home_region,
                base_dir=base_dir,
                environment_variables=cfg.environments.environment_variables(),
            )
            with open(output, 'w') as f:
                json.dump(builder.render(definition), f, indent=2)
            console.print(f"\n[green]Template written to[/green] {output}")
    except Exception as e:
        fail(e, 'plan')


@cli.command()
@click.argument('template', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output file (default: stdout)')
@click.pass_context
def transform(ctx, template, output):
    """Apply both pipeline macros to a template file."""
    cfg = load_config(ctx.obj['config_path'])
    try:
        if cfg.roles is None:
            raise ConfigurationError(
                "Shared roles are not configured",
                suggestions=[f"Add a 'roles' section or a {DEVOPS_ENVIRONMENT_KEY} environment"],
            )
        with open(template, 'r') as f:
            fragment = json.load(f)

        fragment = ChangesetRenamer().rename(fragment)
        fragment = RoleReassigner(cfg.roles).reassign_roles(fragment)
    except Exception as e:
        fail(e, 'transform')
        return

    rendered = json.dumps(fragment, indent=2)
    if output:
        with open(output, 'w') as f:
            f.write(rendered)
        console.print(f"[green]Transformed template written to[/green] {output}")
    else:
        click.echo(rendered)


@cli.group()
def cleanup():
    """Delete old inner pipelines and their stacks."""
    pass


@cleanup.command('detect')
@click.pass_context
def cleanup_detect(ctx):
    """List pipeline stacks eligible for deletion."""
    cfg = load_config(ctx.obj['config_path'])
    try:
        clients = client_manager(ctx)
        detector = OldPipelineDetector(CodePipelineGateway(clients.get_client('codepipeline')), cfg.cleanup)
        status = detector.detect_old_pipeline_stacks()
    except Exception as e:
        fail(e, 'cleanup_detect')
        return

    if status.is_complete:
        console.print('[green]No pipeline stacks eligible for deletion[/green]')
    else:
        print_pairs(status, 'Eligible for deletion')


@cleanup.command('delete-batch')
@click.argument('input_file', metavar='INPUT', type=click.File('r'))
@click.pass_context
def cleanup_delete_batch(ctx, input_file):
    """Process one batch of a work envelope (JSON) and print the remainder."""
    cfg = load_config(ctx.obj['config_path'])
    try:
        status = ProgressStatus[PipelineStackPair].model_validate(json.load(input_file))
        clients = client_manager(ctx)
        deleter = BatchStackDeleter(
            CloudFormationGateway(clients.get_client('cloudformation')),
            cfg.cleanup.delete_batch_size,
        )
        remaining = deleter.process_batch(status)
    except Exception as e:
        fail(e, 'cleanup_delete_batch')
        return

    click.echo(json.dumps(remaining.to_payload(), indent=2))


@cleanup.command('run')
@click.option('--dry-run', is_flag=True, help='Only detect, delete nothing')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def cleanup_run(ctx, dry_run, yes):
    """Run detection and batch deletion until no work remains."""
    cfg = load_config(ctx.obj['config_path'])
    settings = cfg.cleanup

    if not dry_run and not yes:
        console.print(Panel.fit(
            f"[bold red]This will delete old pipeline stacks[/bold red]\n\n"
            f"Versions kept per stack: {settings.max_history_length}\n"
            f"Minimum idle time: {settings.history_months_length} months\n"
            f"Batch size: {settings.delete_batch_size}",
            title="Cleanup",
            border_style="red"
        ))
        if not click.confirm('Continue?'):
            console.print('[yellow]Cleanup cancelled[/yellow]')
            return

    try:
        clients = client_manager(ctx)
        workflow = CleanupWorkflow(
            OldPipelineDetector(CodePipelineGateway(clients.get_client('codepipeline')), settings),
            BatchStackDeleter(
                CloudFormationGateway(clients.get_client('cloudformation')),
                settings.delete_batch_size,
            ),
            settings,
        )
        status = workflow.run(dry_run=dry_run)
    except Exception as e:
        fail(e, 'cleanup_run')
        return

    if dry_run:
        print_pairs(status, 'Would delete')
    else:
        console.print('[green]✓ Cleanup complete[/green]')


@cli.command('start-pipeline')
@click.argument('name')
@click.pass_context
def start_pipeline(ctx, name: str):
    """Start an execution of a pipeline."""
    try:
        gateway = CodePipelineGateway(client_manager(ctx).get_client('codepipeline'))
        execution_id: Optional[str] = gateway.start_pipeline_execution(name)
    except Exception as e:
        fail(e, 'start_pipeline')
        return

    console.print(f"[green]✓ Started[/green] {name} (execution {execution_id})")


if __name__ == '__main__':
    cli()
