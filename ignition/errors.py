"""
Exceptions raised while building, resolving and deploying Ignition modules
"""


class IgnitionError(Exception):
    """Base class for every error raised by this package"""


class ModuleDefinitionError(IgnitionError):
    """A module definition misuses the builder API"""


class ModuleParameterError(IgnitionError):
    """A module parameter could not be resolved"""


class ParametersFileError(IgnitionError):
    """A deployment parameters file is missing or malformed"""


class UnknownModuleError(IgnitionError):
    """No registered module has the requested id"""


class ArtifactNotFoundError(IgnitionError):
    """No compiled Hardhat artifact exists for a contract"""


class DeploymentError(IgnitionError):
    """A deployment transaction failed on chain"""
