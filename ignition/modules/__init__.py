"""
Deployment Modules
==================

Every deployment unit of the project:
- MyTokenModule: the MyToken ERC20 contract
- AssetsModule: the Assets NFT marketplace, parameterised by token and WETH addresses
"""

from typing import Dict, Iterable

from ignition.errors import ModuleDefinitionError, UnknownModuleError
from ignition.module_builder import DeploymentModule

from .my_token import MyTokenModule
from .nft_marketplace import AssetsModule

ALL_MODULES = (MyTokenModule, AssetsModule)


def index_modules(modules: Iterable[DeploymentModule]) -> Dict[str, DeploymentModule]:
    """Map module ids to modules, rejecting duplicated ids"""
    indexed: Dict[str, DeploymentModule] = {}
    for module in modules:
        if module.id in indexed:
            raise ModuleDefinitionError(f"Module id {module.id} is used by more than one module")
        indexed[module.id] = module
    return indexed


MODULES_BY_ID = index_modules(ALL_MODULES)


def get_module(module_id: str) -> DeploymentModule:
    try:
        return MODULES_BY_ID[module_id]
    except KeyError:
        known = ', '.join(sorted(MODULES_BY_ID))
        raise UnknownModuleError(f"Unknown module {module_id!r}. Available modules: {known}") from None


__all__ = ['ALL_MODULES', 'MODULES_BY_ID', 'AssetsModule', 'MyTokenModule', 'get_module', 'index_modules']
