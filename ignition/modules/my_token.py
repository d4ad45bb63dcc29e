"""
MyToken deployment module
"""

from ignition.module_builder import ModuleBuilder, build_module


def define(m: ModuleBuilder):
    my_token = m.contract("MyToken")

    return {"myToken": my_token}


MyTokenModule = build_module("MyTokenModule", define)
