from pathlib import Path

import click

from xdeploy.constants import DEFAULT_CONFIRMATIONS
from xdeploy.flows import FLOWS
from xdeploy.types import KeyValue, MinInt

flow_option = click.option(
    "--flow",
    "-f",
    help="Deployment flow; defaults to 'deployment.flow' in the parameters file.",
    type=click.Choice(list(FLOWS)),
    required=False,
)

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="YAML or JSON file with the deployment parameters.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

param_option = click.option(
    "--set",
    "-s",
    "overrides",
    help="Parameter override, e.g. --set routerAddress=0x...",
    type=KeyValue(),
    multiple=True,
)

from_env_option = click.option(
    "--from-env",
    help="Read parameters from environment variables (e.g. ROUTER_ADDRESS).",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Verify deployed sources on the network's block explorer.",
    default=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without asking for confirmation.",
    is_flag=True,
    default=False,
)

confirmations_option = click.option(
    "--confirmations",
    "-c",
    help="Block confirmations to wait for after each transaction.",
    type=MinInt(1),
    default=DEFAULT_CONFIRMATIONS,
)

output_option = click.option(
    "--output",
    "-o",
    help="Also write the deployment result to this JSON file.",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)
