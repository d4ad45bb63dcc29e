"""
Assets (NFT marketplace) deployment module

Deploys the Assets contract against an existing ERC20 token and WETH
contract. Both addresses come from the deployment parameters; when left
unset the empty string is passed through to the constructor as is.
"""

from ignition.module_builder import ModuleBuilder, build_module


def define(m: ModuleBuilder):
    token_address = m.get_parameter("token", "")
    weth_address = m.get_parameter("weth", "")

    assets = m.contract("Assets", [token_address, weth_address])

    return {"assets": assets}


AssetsModule = build_module("AssetsModule", define)
