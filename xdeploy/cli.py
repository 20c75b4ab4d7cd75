import sys
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option
from ape.logging import ClickHandler, LogLevel, logger

from xdeploy.config import (
    ConfigFile,
    config_from_env,
    config_from_pairs,
    describe_schema,
    merge_sources,
    read_config_file,
)
from xdeploy.exceptions import ConfigurationError
from xdeploy.explorer import ExplorerVerifier
from xdeploy.flows import FLOWS, Flow, get_flow
from xdeploy.networks import check_chain_id, describe_network, verification_enabled
from xdeploy.options import (
    autosign_option,
    confirmations_option,
    flow_option,
    from_env_option,
    output_option,
    param_option,
    params_filepath_option,
    verify_option,
)
from xdeploy.pipeline import DeploymentPipeline, ExecutionContext
from xdeploy.result import DeploymentResult, aggregate, read_result, write_result
from xdeploy.transactor import ApeChain
from xdeploy.verification import VerificationStage


def log_to_stderr() -> None:
    """Sends every log level to stderr; stdout carries only the deployment result."""
    echo_kwargs = {level.name.lower(): {"err": True} for level in LogLevel}
    for handler in logger._logger.handlers:
        if isinstance(handler, ClickHandler):
            handler.echo_kwargs = echo_kwargs


def _select_flow(flow_name: Optional[str], config_file: Optional[ConfigFile]) -> Flow:
    flow_name = flow_name or (config_file.flow if config_file else None)
    if not flow_name:
        raise click.UsageError("Provide --flow or set 'deployment.flow' in the parameters file.")
    try:
        return get_flow(flow_name)
    except ValueError as e:
        raise click.UsageError(str(e))


def _emit(result: DeploymentResult, output: Optional[Path]) -> None:
    """Writes the result and exits non-zero if the deployment was aborted."""
    if output:
        write_result(result, output)
    click.echo(result.to_json())
    if not result.succeeded:
        sys.exit(1)


def run_deployment(
    flow_name: Optional[str],
    params_filepath: Optional[Path],
    overrides: Sequence[Tuple[str, str]],
    from_env: bool,
    output: Optional[Path],
    make_context: Callable[[], ExecutionContext],
) -> DeploymentResult:
    """
    Collects the configuration, runs the flow and emits its result.

    Configuration problems found before the pipeline starts (an unreadable
    parameters file, a chain id mismatch) are emitted as aborted results too.
    """
    log_to_stderr()
    config_file = None
    try:
        config_file = read_config_file(params_filepath) if params_filepath else None
        selected = _select_flow(flow_name, config_file)
        check_chain_id(config_file.chain_id if config_file else None)
    except ConfigurationError as e:
        logger.error(str(e))
        name = flow_name or (config_file.flow if config_file else None) or "-"
        result = aggregate(flow=name, artifacts=(), error=f"ConfigurationError: {e}")
        _emit(result, output)
        return result

    output = output or (config_file.artifact_filepath if config_file else None)
    config = merge_sources(
        config_file.parameters if config_file else None,
        config_from_env(selected.schema) if from_env else None,
        config_from_pairs(overrides, selected.schema),
    )
    logger.info(f"Flow: {selected.name}\nConfig: {params_filepath or '-'}")

    result = DeploymentPipeline(flow=selected, context=make_context()).run(config)
    _emit(result, output)
    return result


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@flow_option
@params_filepath_option
@param_option
@from_env_option
@verify_option
@autosign_option
@confirmations_option
@output_option
def deploy(
    network,
    account,
    flow,
    params_filepath,
    overrides: Sequence[Tuple[str, str]],
    from_env,
    verify,
    autosign,
    confirmations,
    output,
):
    """Deploy one of the known flows and print its result as JSON."""
    log_to_stderr()
    logger.info(f"Account: {account.address}\nNetwork: {describe_network()}\nVerify: {verify}")

    def make_context() -> ExecutionContext:
        verifier = ExplorerVerifier() if verification_enabled(verify) else None
        return ExecutionContext(
            chain=ApeChain(account=account, autosign=autosign),
            verifier=verifier,
            confirmations=confirmations,
            autosign=autosign,
        )

    run_deployment(flow, params_filepath, overrides, from_env, output, make_context)


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@click.option(
    "--result-filepath",
    "-r",
    help="Deployment result written by a previous run.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)
@click.option(
    "--artifact",
    "-a",
    "artifact_names",
    help="Only verify these artifacts.",
    multiple=True,
)
def verify(network, result_filepath, artifact_names):
    """Verify the artifacts of a previous deployment result."""
    result = read_result(result_filepath)
    artifacts = result.artifacts
    if artifact_names:
        unknown = set(artifact_names) - set(result.addresses)
        if unknown:
            raise click.BadParameter(
                f"{', '.join(sorted(unknown))} not found in {result_filepath}",
                param_hint="--artifact",
            )
        artifacts = tuple(a for a in artifacts if a.name in artifact_names)

    verifier = ExplorerVerifier() if verification_enabled(True) else None
    outcomes = VerificationStage(verifier).run(artifacts)
    for outcome in outcomes:
        click.echo(f"{outcome.artifact_name}: {outcome.succeeded} {outcome.error_detail or ''}")

    previous = {o.artifact_name: o for o in result.verifications}
    previous.update({o.artifact_name: o for o in outcomes})
    updated = result._replace(
        verifications=tuple(previous[a.name] for a in result.artifacts if a.name in previous)
    )
    write_result(updated, result_filepath)


@click.command(name="flows")
@click.option("--flow", "-f", "flow_name", type=click.Choice(list(FLOWS)), required=False)
def list_flows(flow_name):
    """List the known flows and their parameters."""
    for name, flow in FLOWS.items():
        if flow_name and flow_name != name:
            continue
        click.secho(f"{name}: {flow.description}", fg="green")
        for line in describe_schema(flow.schema):
            click.secho(f"    {line}", fg="cyan")


@click.group()
def cli():
    """Configuration driven contract deployments."""
    log_to_stderr()


cli.add_command(deploy)
cli.add_command(verify)
cli.add_command(list_flows)
