"""
Ignition Deployment Modules
===========================

Declarative deployment units for the project's contracts.

Structure:
- module_builder: build_module() and the builder handed to module definitions
- modules/: the deployment units (MyTokenModule, AssetsModule)
- parameters: deployment parameter files
- deployer: sends a resolved plan to the network through web3
- cli: the `ignition` command line
"""

from .module_builder import (
    ContractFuture,
    DeploymentModule,
    DeploymentPlan,
    DeploymentStep,
    FutureReference,
    ModuleBuilder,
    ModuleParameter,
    build_module,
)

__version__ = "1.0.0"

__all__ = [
    'ContractFuture',
    'DeploymentModule',
    'DeploymentPlan',
    'DeploymentStep',
    'FutureReference',
    'ModuleBuilder',
    'ModuleParameter',
    'build_module',
]
