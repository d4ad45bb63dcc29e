#!/usr/bin/env python3
"""
Module deployer
Sends the contract deployments of a resolved plan through web3
"""

import os
import json
import logging
import tempfile
import requests
from datetime import datetime
from typing import Dict, Any, Optional
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import ArtifactNotFoundError, DeploymentError, IgnitionError
from .module_builder import DeploymentPlan, DeploymentStep, FutureReference

logger = logging.getLogger(__name__)


class ModuleDeployer:
    def __init__(self, rpc_url: Optional[str] = None, artifacts_dir: Optional[str] = None,
                 deployments_dir: Optional[str] = None):
        self.rpc_url = rpc_url or os.getenv("RPC_URL", "http://localhost:8545")
        self.private_key = os.getenv("PRIVATE_KEY")
        chain_id = os.getenv("CHAIN_ID")
        self.chain_id: Optional[int] = int(chain_id) if chain_id else None
        gas_limit = os.getenv("GAS_LIMIT")
        self.gas_limit = int(gas_limit) if gas_limit else None
        self.receipt_timeout = int(os.getenv("RECEIPT_TIMEOUT", "300"))

        self.artifacts_dir = artifacts_dir or os.getenv("ARTIFACTS_DIR", "artifacts")
        self.deployments_dir = deployments_dir or os.getenv("DEPLOYMENTS_DIR", os.path.join("ignition", "deployments"))

        # Slack webhook (optional)
        self.slack_webhook = os.getenv("SLACK_WEBHOOK")

        self.w3: Optional[Web3] = None
        self.deployer_address: Optional[str] = None

    def connect(self):
        """Initialize Web3 connection and pick the deployer account"""
        try:
            self.w3 = Web3(Web3.HTTPProvider(self.rpc_url))
            self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            if not self.w3.is_connected():
                raise IgnitionError(f"Could not connect to RPC URL: {self.rpc_url}")

            # CHAIN_ID only confirms the target network, the node decides
            node_chain_id = self.w3.eth.chain_id
            if self.chain_id is not None and self.chain_id != node_chain_id:
                raise IgnitionError(
                    f"CHAIN_ID is {self.chain_id} but the node at {self.rpc_url} reports chain {node_chain_id}"
                )
            self.chain_id = node_chain_id

            if self.private_key:
                self.deployer_address = self.w3.eth.account.from_key(self.private_key).address
            else:
                accounts = self.w3.eth.accounts
                if not accounts:
                    raise IgnitionError("PRIVATE_KEY not set and the node exposes no unlocked accounts")
                self.deployer_address = accounts[0]

            logger.info(f"Connected to blockchain at {self.rpc_url} (chain {self.chain_id})")
            logger.info(f"Using deployer account: {self.deployer_address}")
        except Exception as e:
            logger.error(f"Failed to initialize Web3: {e}")
            raise

    def artifact_path(self, contract_name: str) -> str:
        """Locates the Hardhat artifact of a contract"""
        default_path = os.path.join(self.artifacts_dir, 'contracts', f'{contract_name}.sol', f'{contract_name}.json')
        if os.path.exists(default_path):
            return default_path

        # Contracts declared in a file with a different name, or in a subdirectory
        for root, _dirs, files in os.walk(self.artifacts_dir):
            if f'{contract_name}.json' in files:
                return os.path.join(root, f'{contract_name}.json')

        raise ArtifactNotFoundError(
            f"No artifact for contract {contract_name} under {self.artifacts_dir}. Compile the contracts first."
        )

    def load_artifact(self, contract_name: str) -> Dict[str, Any]:
        """Loads the ABI and bytecode of a contract from its JSON artifact."""
        with open(self.artifact_path(contract_name), 'r') as f:
            data = json.load(f)
        return {'abi': data['abi'], 'bytecode': data['bytecode']}

    def deploy_contract(self, step: DeploymentStep, args: tuple) -> str:
        """
        Deploy a single contract and wait for its receipt

        Args:
            step: Resolved deployment step
            args: Constructor arguments with future references replaced by addresses

        Returns:
            Address of the deployed contract
        """
        if self.w3 is None or self.deployer_address is None:
            raise IgnitionError("Web3 not initialized, call connect() first")

        artifact = self.load_artifact(step.contract_name)
        if artifact['bytecode'] in ('', '0x'):
            raise DeploymentError(f"{step.contract_name} has no bytecode, it is abstract or an interface")

        factory = self.w3.eth.contract(abi=artifact['abi'], bytecode=artifact['bytecode'])
        constructor = factory.constructor(*args)

        tx_params: Dict[str, Any] = {'from': self.deployer_address, 'value': step.value}
        if self.gas_limit:
            tx_params['gas'] = self.gas_limit

        logger.info(f"Deploying {step.future_id}...")
        if self.private_key:
            tx_params.update({
                'nonce': self.w3.eth.get_transaction_count(self.deployer_address),
                'chainId': self.chain_id,
                'gasPrice': self.w3.eth.gas_price,
            })
            tx = constructor.build_transaction(tx_params)
            signed_tx = self.w3.eth.account.sign_transaction(tx, self.private_key)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        else:
            tx_hash = constructor.transact(tx_params)

        logger.info(f"-> Transaction sent! Hash: {tx_hash.to_0x_hex()}")
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)

        if receipt['status'] != 1:
            raise DeploymentError(f"Deployment transaction of {step.future_id} reverted: {tx_hash.to_0x_hex()}")

        address = receipt['contractAddress']
        logger.info(f"-> {step.future_id} deployed at {address} in block {receipt['blockNumber']}")
        return address

    def deploy(self, plan: DeploymentPlan) -> Dict[str, str]:
        """
        Deploy every step of a plan in declaration order

        Returns:
            Mapping of the module's result names to deployed addresses
        """
        if self.w3 is None:
            self.connect()

        deployed: Dict[str, str] = {}
        try:
            logger.info(f"Deploying module {plan.module_id} ({len(plan.steps)} contract(s))")
            for step in plan.steps:
                missing = [dep for dep in step.dependencies if dep not in deployed]
                if missing:
                    raise DeploymentError(f"{step.future_id} depends on undeployed {', '.join(missing)}")

                args = tuple(_substitute(arg, deployed) for arg in step.args)
                deployed[step.future_id] = self.deploy_contract(step, args)
                self._record_address(step.future_id, deployed[step.future_id])

        except Exception as e:
            logger.error(f"Deployment of {plan.module_id} failed: {e}")
            self._send_alert(f"Deployment of {plan.module_id} failed: {e}")
            raise

        results = {key: deployed[future_id] for key, future_id in plan.results.items()}
        self._send_alert(f"Deployment of {plan.module_id} completed: {results}")
        return results

    def journal_path(self) -> str:
        return os.path.join(self.deployments_dir, f'chain-{self.chain_id}', 'deployed_addresses.json')

    def _read_addresses(self, path: str) -> Dict[str, str]:
        """Reads the address file, moving an unreadable one aside"""
        if not os.path.exists(path):
            return {}

        try:
            with open(path, 'r', encoding='utf-8') as f:
                addresses = json.load(f)
            if not isinstance(addresses, dict):
                raise ValueError("expected a JSON object")
            return addresses
        except (OSError, ValueError) as e:
            backup_path = f"{path}.corrupt"
            logger.warning(f"Unreadable address file {path} ({e}), moving it to {backup_path}")
            os.replace(path, backup_path)
            return {}

    def _record_address(self, future_id: str, address: str):
        """Adds a deployed address to the chain's deployed_addresses.json"""
        path = self.journal_path()
        directory = os.path.dirname(path)
        try:
            addresses = self._read_addresses(path)
            addresses[future_id] = address

            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile('w', dir=directory, suffix='.tmp', delete=False,
                                             encoding='utf-8') as f:
                json.dump(addresses, f, indent=2)
            os.replace(f.name, path)
        except OSError as e:
            raise DeploymentError(
                f"{future_id} was deployed at {address} but could not be recorded in {path}: {e}"
            ) from e

    def _send_alert(self, message):
        """Send deployment notification to Slack"""
        if not self.slack_webhook:
            return

        try:
            self._send_slack_alert(message)
        except Exception as e:
            logger.error(f"Failed to send Slack alert: {e}")

    def _send_slack_alert(self, message):
        """Send Slack alert"""
        payload = {
            "text": f"Ignition deployment: {message}",
            "attachments": [
                {
                    "fields": [
                        {"title": "Network", "value": self.rpc_url, "short": True},
                        {"title": "Chain ID", "value": str(self.chain_id), "short": True},
                        {"title": "Deployer", "value": str(self.deployer_address), "short": True},
                        {"title": "Time", "value": datetime.now().strftime('%Y-%m-%d %H:%M:%S'), "short": True},
                    ]
                }
            ]
        }

        response = requests.post(self.slack_webhook, json=payload, timeout=10)
        response.raise_for_status()


def _substitute(arg: Any, deployed: Dict[str, str]) -> Any:
    if isinstance(arg, FutureReference):
        return deployed[arg.future_id]
    if isinstance(arg, tuple):
        return [_substitute(item, deployed) for item in arg]
    if isinstance(arg, dict):
        return {key: _substitute(item, deployed) for key, item in arg.items()}
    return arg
