"""
Deployment parameter files

A parameters file is a JSON object with one section per module id plus an
optional "$global" section shared by every module:

    {
        "$global": {"weth": "0x..."},
        "AssetsModule": {"token": "0x..."}
    }
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

from .errors import ParametersFileError

logger = logging.getLogger(__name__)

GLOBAL_SECTION = "$global"


def load_parameters(file_path: str) -> Dict[str, Dict[str, Any]]:
    """Loads and validates a deployment parameters file."""
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ParametersFileError(f"Parameters file not found: {file_path}") from None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParametersFileError(f"Could not parse parameters file {file_path}: {e}") from e
    except OSError as e:
        raise ParametersFileError(f"Could not read parameters file {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ParametersFileError(f"Parameters file {file_path} must contain a JSON object")

    for section, values in data.items():
        if not isinstance(values, dict):
            raise ParametersFileError(
                f"Section '{section}' of parameters file {file_path} must be an object of parameter values"
            )

    logger.info(f"Loaded parameters for {len(data)} section(s) from {os.path.basename(file_path)}")
    return data


def parameters_for(module_id: str, all_parameters: Optional[Mapping[str, Mapping[str, Any]]]) -> Dict[str, Any]:
    """Merges the global section with the module's own section; module values win."""
    if not all_parameters:
        return {}

    merged = dict(all_parameters.get(GLOBAL_SECTION, {}))
    merged.update(all_parameters.get(module_id, {}))
    return merged
