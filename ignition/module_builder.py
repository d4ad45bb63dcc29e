"""
Ignition Module Builder
Declarative deployment units for Hardhat-compiled contracts

A module definition receives a ModuleBuilder, declares parameters and
contract deployments on it, and returns the handles it wants to expose.
Nothing touches the network here: the result is an immutable
DeploymentModule that can be resolved into a DeploymentPlan as many times
as needed.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import ModuleDefinitionError, ModuleParameterError

logger = logging.getLogger(__name__)

MODULE_ID_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9_]*$')
CONTRACT_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9_$]+$')


@dataclass(frozen=True)
class ModuleParameter:
    """A named input resolved at deploy time"""
    module_id: str
    name: str
    default_value: Any = None

    @property
    def required(self) -> bool:
        return self.default_value is None


@dataclass(frozen=True)
class ContractFuture:
    """Handle to a contract that will exist once the module is deployed"""
    id: str
    module_id: str
    contract_name: str
    constructor_args: Tuple[Any, ...] = ()
    value: Union[int, ModuleParameter] = 0
    after: Tuple['ContractFuture', ...] = ()


@dataclass(frozen=True)
class FutureReference:
    """Placeholder for the address of a contract deployed earlier in the same plan"""
    future_id: str


@dataclass(frozen=True)
class DeploymentStep:
    """One contract deployment with every parameter already resolved"""
    future_id: str
    contract_name: str
    args: Tuple[Any, ...] = ()
    value: int = 0
    dependencies: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.future_id,
            'contract': self.contract_name,
            'args': [_render(arg) for arg in self.args],
            'value': self.value,
            'dependencies': list(self.dependencies),
        }


@dataclass(frozen=True)
class DeploymentPlan:
    """The declared graph of a module for one set of parameter values"""
    module_id: str
    steps: Tuple[DeploymentStep, ...]
    results: Dict[str, str] = field(default_factory=dict)

    def step(self, future_id: str) -> DeploymentStep:
        for step in self.steps:
            if step.future_id == future_id:
                return step
        raise KeyError(future_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'module': self.module_id,
            'steps': [step.to_dict() for step in self.steps],
            'results': dict(self.results),
        }


def _render(arg: Any) -> Any:
    if isinstance(arg, FutureReference):
        return {'future': arg.future_id}
    if isinstance(arg, tuple):
        return [_render(item) for item in arg]
    if isinstance(arg, dict):
        return {key: _render(item) for key, item in arg.items()}
    return arg


def _freeze(arg: Any) -> Any:
    # Lists become tuples so that equal declarations compare equal
    if isinstance(arg, (list, tuple)):
        return tuple(_freeze(item) for item in arg)
    if isinstance(arg, dict):
        return {key: _freeze(item) for key, item in arg.items()}
    return arg


def _same_type(value: Any, default: Any) -> bool:
    if isinstance(value, bool) or isinstance(default, bool):
        return isinstance(value, bool) and isinstance(default, bool)
    return isinstance(value, type(default))


@dataclass(frozen=True)
class DeploymentModule:
    """A named, immutable group of contract deployments"""
    id: str
    futures: Tuple[ContractFuture, ...] = ()
    parameters: Dict[str, ModuleParameter] = field(default_factory=dict)
    results: Dict[str, ContractFuture] = field(default_factory=dict)

    def resolve(self, parameters: Optional[Mapping[str, Any]] = None) -> DeploymentPlan:
        """
        Resolve parameters and produce the deployment plan

        Args:
            parameters: Parameter values for this module, keyed by name.
                Names the module does not declare are ignored.

        Returns:
            DeploymentPlan with one step per declared contract, in
            declaration order
        """
        provided = dict(parameters or {})

        unknown = sorted(set(provided) - set(self.parameters))
        if unknown:
            logger.warning(f"Ignoring parameters not declared by {self.id}: {', '.join(unknown)}")

        values = {
            name: self._resolve_parameter(parameter, provided)
            for name, parameter in self.parameters.items()
        }

        steps = tuple(
            DeploymentStep(
                future_id=future.id,
                contract_name=future.contract_name,
                args=tuple(self._resolve_arg(arg, values) for arg in future.constructor_args),
                value=self._resolve_arg(future.value, values),
                dependencies=self._dependencies(future),
            )
            for future in self.futures
        )
        results = {key: future.id for key, future in self.results.items()}

        return DeploymentPlan(module_id=self.id, steps=steps, results=results)

    def _resolve_parameter(self, parameter: ModuleParameter, provided: Dict[str, Any]) -> Any:
        if parameter.name in provided:
            value = _freeze(provided[parameter.name])
            default = parameter.default_value
            if default is not None and not _same_type(value, default):
                raise ModuleParameterError(
                    f"Module parameter '{parameter.name}' of {self.id} requires a value of type "
                    f"'{type(default).__name__}' but received '{type(value).__name__}'"
                )
            return value

        if parameter.required:
            raise ModuleParameterError(
                f"Module parameter '{parameter.name}' of {self.id} requires a value but was given none"
            )
        return parameter.default_value

    def _resolve_arg(self, arg: Any, values: Dict[str, Any]) -> Any:
        if isinstance(arg, ModuleParameter):
            return values[arg.name]
        if isinstance(arg, ContractFuture):
            return FutureReference(arg.id)
        if isinstance(arg, tuple):
            return tuple(self._resolve_arg(item, values) for item in arg)
        if isinstance(arg, dict):
            return {key: self._resolve_arg(item, values) for key, item in arg.items()}
        return arg

    def _dependencies(self, future: ContractFuture) -> Tuple[str, ...]:
        found: List[str] = []

        def collect(arg: Any) -> None:
            if isinstance(arg, ContractFuture):
                if arg.id not in found:
                    found.append(arg.id)
            elif isinstance(arg, tuple):
                for item in arg:
                    collect(item)
            elif isinstance(arg, dict):
                for item in arg.values():
                    collect(item)

        collect(future.constructor_args)
        collect(future.after)
        return tuple(found)


class ModuleBuilder:
    """Collects the parameters and contract deployments of one module"""

    def __init__(self, module_id: str):
        self.module_id = module_id
        self._futures: Dict[str, ContractFuture] = {}
        self._parameters: Dict[str, ModuleParameter] = {}

    def get_parameter(self, name: str, default: Any = None) -> ModuleParameter:
        """
        Declare a module parameter

        Args:
            name: Parameter name, looked up in the deployment parameters
            default: Value used when none is provided. None makes the
                parameter required.

        Returns:
            ModuleParameter usable as a constructor argument or value
        """
        if not isinstance(name, str) or not name.isidentifier():
            raise ModuleDefinitionError(f"Invalid parameter name {name!r} in module {self.module_id}")

        existing = self._parameters.get(name)
        if existing is not None:
            if existing.default_value != _freeze(default):
                raise ModuleDefinitionError(
                    f"Parameter '{name}' of module {self.module_id} was declared twice with different defaults"
                )
            return existing

        parameter = ModuleParameter(module_id=self.module_id, name=name, default_value=_freeze(default))
        self._parameters[name] = parameter
        return parameter

    def contract(
        self,
        contract_name: str,
        args: Sequence[Any] = (),
        *,
        id: Optional[str] = None,
        value: Union[int, ModuleParameter] = 0,
        after: Sequence[ContractFuture] = (),
    ) -> ContractFuture:
        """
        Declare a contract deployment

        Args:
            contract_name: Name of the compiled contract artifact
            args: Constructor arguments in order. Literals, parameters and
                futures of this module are accepted.
            id: Overrides the contract name in the future id, needed when
                the same contract is deployed more than once
            value: Wei sent with the deployment transaction
            after: Futures that must be deployed before this one

        Returns:
            ContractFuture handle for the deployed contract
        """
        if not isinstance(contract_name, str) or not CONTRACT_NAME_PATTERN.match(contract_name):
            raise ModuleDefinitionError(f"Invalid contract name {contract_name!r} in module {self.module_id}")
        if id is not None and (not isinstance(id, str) or not CONTRACT_NAME_PATTERN.match(id)):
            raise ModuleDefinitionError(f"Invalid id {id!r} in module {self.module_id}")

        future_id = f"{self.module_id}#{id or contract_name}"
        if future_id in self._futures:
            raise ModuleDefinitionError(
                f"Duplicated id {future_id} found in module {self.module_id}, "
                "pass an explicit id to deploy the same contract twice"
            )

        if isinstance(args, (str, bytes)) or not isinstance(args, (list, tuple)):
            raise ModuleDefinitionError(f"Constructor args of {future_id} must be a list or tuple")
        constructor_args = _freeze(args)
        self._check_references(constructor_args, future_id)

        if isinstance(value, ModuleParameter):
            self._check_references(value, future_id)
        elif isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ModuleDefinitionError(f"Value of {future_id} must be a non-negative integer or a parameter")

        after = tuple(after)
        for dependency in after:
            if not isinstance(dependency, ContractFuture):
                raise ModuleDefinitionError(f"'after' of {future_id} only accepts contract futures")
        self._check_references(after, future_id)

        future = ContractFuture(
            id=future_id,
            module_id=self.module_id,
            contract_name=contract_name,
            constructor_args=constructor_args,
            value=value,
            after=after,
        )
        self._futures[future_id] = future
        logger.debug(f"Declared {future_id} with {len(constructor_args)} constructor args")
        return future

    def _check_references(self, arg: Any, future_id: str) -> None:
        if isinstance(arg, ModuleParameter):
            if self._parameters.get(arg.name) is not arg:
                raise ModuleDefinitionError(
                    f"{future_id} uses parameter '{arg.name}' from module {arg.module_id}, "
                    f"which is not declared in {self.module_id}"
                )
        elif isinstance(arg, ContractFuture):
            if self._futures.get(arg.id) is not arg:
                raise ModuleDefinitionError(
                    f"{future_id} references {arg.id}, which is not declared in {self.module_id}"
                )
        elif isinstance(arg, tuple):
            for item in arg:
                self._check_references(item, future_id)
        elif isinstance(arg, dict):
            for item in arg.values():
                self._check_references(item, future_id)

    def build(self, results: Mapping[str, ContractFuture]) -> DeploymentModule:
        if not isinstance(results, Mapping):
            raise ModuleDefinitionError(
                f"Module {self.module_id} must return a mapping of result names to contract futures"
            )

        for key, future in results.items():
            if not isinstance(key, str) or not key.isidentifier():
                raise ModuleDefinitionError(f"Invalid result name {key!r} in module {self.module_id}")
            if not isinstance(future, ContractFuture) or self._futures.get(future.id) is not future:
                raise ModuleDefinitionError(
                    f"Result '{key}' of module {self.module_id} must be a contract declared in the module"
                )

        return DeploymentModule(
            id=self.module_id,
            futures=tuple(self._futures.values()),
            parameters=dict(self._parameters),
            results=dict(results),
        )


def build_module(
    module_id: str,
    definition: Callable[[ModuleBuilder], Mapping[str, ContractFuture]],
) -> DeploymentModule:
    """
    Build a deployment module from its definition function

    Args:
        module_id: Unique name of the deployment unit
        definition: Callback declaring parameters and contracts on the
            builder and returning the exposed handles

    Returns:
        Immutable DeploymentModule
    """
    if not isinstance(module_id, str) or not MODULE_ID_PATTERN.match(module_id):
        raise ModuleDefinitionError(f"Invalid module id {module_id!r}")
    if not callable(definition):
        raise ModuleDefinitionError(f"Definition of module {module_id} must be callable")

    builder = ModuleBuilder(module_id)
    module = builder.build(definition(builder))

    logger.debug(
        f"Built module {module_id}: {len(module.futures)} contracts, "
        f"{len(module.parameters)} parameters"
    )
    return module
