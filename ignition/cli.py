"""
ignition - deploy the project's contract modules.

Commands:
  list        Show every deployment module
  visualize   Print the resolved deployment plan of a module as JSON
  deploy      Deploy a module to the configured network

Configuration comes from the environment (or a .env file):
  RPC_URL, PRIVATE_KEY, CHAIN_ID, GAS_LIMIT, SLACK_WEBHOOK

Examples:
  ignition list
  ignition visualize AssetsModule --parameters parameters.json
  ignition deploy MyTokenModule --rpc-url http://localhost:8545
"""

import json
import logging
from typing import Any, Dict, Optional

import typer
from dotenv import load_dotenv

from .deployer import ModuleDeployer
from .errors import IgnitionError
from .modules import ALL_MODULES, get_module
from .module_builder import DeploymentPlan
from .parameters import load_parameters, parameters_for

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="ignition",
    help="Declarative contract deployment modules",
    no_args_is_help=True,
    add_completion=False,
)


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('ignition_deploy.log'),
            logging.StreamHandler()
        ]
    )


def _resolve_plan(module_id: str, parameters_file: Optional[str]) -> DeploymentPlan:
    module = get_module(module_id)
    all_parameters: Dict[str, Dict[str, Any]] = {}
    if parameters_file:
        all_parameters = load_parameters(parameters_file)
    return module.resolve(parameters_for(module.id, all_parameters))


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    configure_logging(verbose)


@app.command("list")
def list_modules():
    """Show every deployment module."""
    for module in ALL_MODULES:
        typer.echo(f"{module.id}\t{', '.join(module.results)}")


@app.command()
def visualize(
    module_id: str = typer.Argument(..., help="Module id, e.g. AssetsModule"),
    parameters: Optional[str] = typer.Option(None, "--parameters", "-p", help="JSON parameters file"),
):
    """Print the resolved deployment plan of a module as JSON."""
    try:
        plan = _resolve_plan(module_id, parameters)
    except IgnitionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(plan.to_dict(), indent=2))


@app.command()
def deploy(
    module_id: str = typer.Argument(..., help="Module id, e.g. MyTokenModule"),
    parameters: Optional[str] = typer.Option(None, "--parameters", "-p", help="JSON parameters file"),
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url", help="Overrides RPC_URL"),
    artifacts_dir: Optional[str] = typer.Option(None, "--artifacts-dir", help="Hardhat artifacts directory"),
    deployments_dir: Optional[str] = typer.Option(None, "--deployments-dir", help="Where deployed addresses are written"),
):
    """Deploy a module to the configured network."""
    try:
        plan = _resolve_plan(module_id, parameters)
        deployer = ModuleDeployer(rpc_url=rpc_url, artifacts_dir=artifacts_dir, deployments_dir=deployments_dir)
        results = deployer.deploy(plan)
    except IgnitionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Deployed {plan.module_id}")
    for name, address in results.items():
        typer.echo(f"  {name}: {address}")


if __name__ == "__main__":
    app()
