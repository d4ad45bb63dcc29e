#!/usr/bin/env python3
"""
Tests for the Ignition module builder
Tests module declaration, validation and parameter resolution
"""

import pytest

from ignition.errors import ModuleDefinitionError, ModuleParameterError
from ignition.module_builder import (
    ContractFuture,
    DeploymentPlan,
    FutureReference,
    ModuleParameter,
    build_module,
)


def lock_module(m):
    unlock_time = m.get_parameter("unlockTime", 1893456000)
    locked_amount = m.get_parameter("lockedAmount", 1000000000)

    lock = m.contract("Lock", [unlock_time], value=locked_amount)
    return {"lock": lock}


def token_and_vault(m):
    token = m.contract("Token", ["Vault token", "VLT"])
    vault = m.contract("Vault", [token])
    second = m.contract("Token", ["Second", "SEC"], id="SecondToken")
    registry = m.contract("Registry", [], after=[vault, second])
    return {"token": token, "vault": vault, "registry": registry}


class TestBuildModule:
    """Test class for build_module"""

    def test_module_shape(self):
        """Test ids, futures and results of a built module"""
        module = build_module("LockModule", lock_module)

        assert module.id == "LockModule"
        assert [f.id for f in module.futures] == ["LockModule#Lock"]
        assert set(module.parameters) == {"unlockTime", "lockedAmount"}
        assert isinstance(module.results["lock"], ContractFuture)

    def test_explicit_future_id(self):
        """Test that an explicit id allows deploying a contract twice"""
        module = build_module("VaultModule", token_and_vault)
        ids = [f.id for f in module.futures]

        assert ids == ["VaultModule#Token", "VaultModule#Vault", "VaultModule#SecondToken", "VaultModule#Registry"]
        assert module.futures[2].contract_name == "Token"

    def test_duplicate_future_id(self):
        """Test that deploying the same contract twice without an id fails"""
        def definition(m):
            m.contract("Token")
            m.contract("Token")
            return {}

        with pytest.raises(ModuleDefinitionError, match="Duplicated id TokenModule#Token"):
            build_module("TokenModule", definition)

    @pytest.mark.parametrize("module_id", ["", "1Module", "My-Module", "My Module", None])
    def test_invalid_module_id(self, module_id):
        """Test module id validation"""
        with pytest.raises(ModuleDefinitionError):
            build_module(module_id, lambda m: {})

    def test_invalid_contract_name(self):
        """Test contract name validation"""
        with pytest.raises(ModuleDefinitionError, match="Invalid contract name"):
            build_module("BadModule", lambda m: {"c": m.contract("My Token")})

    def test_args_must_be_a_sequence(self):
        """Test that a single string is not accepted as the argument list"""
        with pytest.raises(ModuleDefinitionError, match="list or tuple"):
            build_module("BadModule", lambda m: {"c": m.contract("Token", "0xabc")})

    def test_negative_value(self):
        """Test that the deployment value must be a non-negative integer"""
        with pytest.raises(ModuleDefinitionError, match="non-negative"):
            build_module("BadModule", lambda m: {"c": m.contract("Token", [], value=-1)})

    def test_definition_must_return_mapping(self):
        """Test that the definition has to return its handles"""
        def definition(m):
            m.contract("Token")

        with pytest.raises(ModuleDefinitionError, match="must return a mapping"):
            build_module("NoResultModule", definition)

    def test_result_must_be_declared_future(self):
        """Test that results only expose contracts of the module"""
        with pytest.raises(ModuleDefinitionError, match="Result 'token'"):
            build_module("BadModule", lambda m: {"token": "0xabc"})

    def test_cross_module_future_rejected(self):
        """Test that a future of another module cannot be used"""
        other = build_module("OtherModule", lambda m: {"token": m.contract("Token")})

        with pytest.raises(ModuleDefinitionError, match="OtherModule#Token"):
            build_module("VaultModule", lambda m: {"vault": m.contract("Vault", [other.results["token"]])})

    def test_cross_module_parameter_rejected(self):
        """Test that a parameter of another module cannot be used"""
        foreign = ModuleParameter(module_id="OtherModule", name="token", default_value="")

        with pytest.raises(ModuleDefinitionError, match="parameter 'token'"):
            build_module("VaultModule", lambda m: {"vault": m.contract("Vault", [foreign])})

    def test_repeated_parameter_returns_same_handle(self):
        """Test that asking twice for a parameter gives the same object"""
        handles = []

        def definition(m):
            handles.append(m.get_parameter("owner", ""))
            handles.append(m.get_parameter("owner", ""))
            return {"c": m.contract("Ownable", [handles[0]])}

        build_module("OwnerModule", definition)
        assert handles[0] is handles[1]

    def test_conflicting_parameter_defaults(self):
        """Test that one parameter cannot have two defaults"""
        def definition(m):
            m.get_parameter("owner", "")
            m.get_parameter("owner", "0x01")
            return {}

        with pytest.raises(ModuleDefinitionError, match="different defaults"):
            build_module("OwnerModule", definition)


class TestResolve:
    """Test class for DeploymentModule.resolve"""

    def setup_method(self):
        """Set up test fixtures before each test method"""
        self.lock = build_module("LockModule", lock_module)
        self.vault = build_module("VaultModule", token_and_vault)

    def test_defaults(self):
        """Test resolution with no parameters"""
        plan = self.lock.resolve()
        step = plan.step("LockModule#Lock")

        assert isinstance(plan, DeploymentPlan)
        assert step.args == (1893456000,)
        assert step.value == 1000000000

    def test_overrides(self):
        """Test that provided values replace defaults, including the value"""
        plan = self.lock.resolve({"unlockTime": 2000000000, "lockedAmount": 5})
        step = plan.step("LockModule#Lock")

        assert step.args == (2000000000,)
        assert step.value == 5

    def test_type_mismatch(self):
        """Test that a value of another type than the default is refused"""
        with pytest.raises(ModuleParameterError, match="type 'int' but received 'str'"):
            self.lock.resolve({"unlockTime": "tomorrow"})

    def test_bool_is_not_int(self):
        """Test that booleans do not pass as integers"""
        with pytest.raises(ModuleParameterError):
            self.lock.resolve({"lockedAmount": True})

    def test_required_parameter(self):
        """Test that a parameter without default must be provided"""
        module = build_module("OwnerModule", lambda m: {"c": m.contract("Ownable", [m.get_parameter("owner")])})

        with pytest.raises(ModuleParameterError, match="requires a value but was given none"):
            module.resolve()

        plan = module.resolve({"owner": "0x01"})
        assert plan.step("OwnerModule#Ownable").args == ("0x01",)

    def test_list_parameter_from_json(self):
        """Test that list values match list defaults"""
        module = build_module(
            "MultisigModule",
            lambda m: {"c": m.contract("Multisig", [m.get_parameter("owners", ["0x01"])])},
        )

        plan = module.resolve({"owners": ["0x02", "0x03"]})
        assert plan.step("MultisigModule#Multisig").args == (("0x02", "0x03"),)

    def test_unknown_parameter_ignored(self, caplog):
        """Test that undeclared parameters only produce a warning"""
        plan = self.lock.resolve({"unlockTime": 1, "owner": "0x01"})

        assert plan.step("LockModule#Lock").args == (1,)
        assert "owner" in caplog.text

    def test_future_arguments_and_dependencies(self):
        """Test that futures become references and dependencies"""
        plan = self.vault.resolve()

        vault = plan.step("VaultModule#Vault")
        assert vault.args == (FutureReference("VaultModule#Token"),)
        assert vault.dependencies == ("VaultModule#Token",)

        registry = plan.step("VaultModule#Registry")
        assert registry.dependencies == ("VaultModule#Vault", "VaultModule#SecondToken")

        assert plan.results == {
            "token": "VaultModule#Token",
            "vault": "VaultModule#Vault",
            "registry": "VaultModule#Registry",
        }

    def test_to_dict(self):
        """Test the JSON rendering of a plan"""
        rendered = self.vault.resolve().to_dict()

        assert rendered["module"] == "VaultModule"
        assert rendered["steps"][0]["args"] == ["Vault token", "VLT"]
        assert rendered["steps"][1]["args"] == [{"future": "VaultModule#Token"}]

    def test_unknown_step(self):
        """Test looking up a step that does not exist"""
        with pytest.raises(KeyError):
            self.lock.resolve().step("LockModule#Missing")
