"""Parse configuration from dictionaries, configuration files and argparse namespaces."""

import importlib.resources
import json
from argparse import Namespace
from pathlib import Path
from typing import Dict, List, Optional, Union

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from cascade_config import CascadeConfig

from phrp import package_data
from phrp.exceptions import PHRPConfigurationError

SEARCH_TOOL_FILENAME_PATTERNS = {
    "moda": ["_moda.id", "moda"],
    "toppic": ["_toppic_prsms", "_toppic_proteoforms", "toppic"],
}


def infer_search_tool(input_file: Union[str, Path]) -> Optional[str]:
    """Infer the search tool from the name of a results file."""
    filename = Path(input_file).name.lower()
    for search_tool, patterns in SEARCH_TOOL_FILENAME_PATTERNS.items():
        if any(pattern in filename for pattern in patterns):
            return search_tool
    return None


def _parse_output_path(configured_path, input_file_path) -> str:
    """Parse output directory and make dirs if required."""
    if configured_path:
        configured_path = Path(configured_path)
        configured_path.mkdir(parents=True, exist_ok=True)
        return configured_path.as_posix()
    else:
        # If none, write next to the input file
        return Path(input_file_path).parent.as_posix()


def _validate_filenames(config: Dict) -> Dict:
    """Validate and infer input/output filenames."""
    # input_file should be provided and exist
    if not config["phrp"]["input_file"]:
        raise PHRPConfigurationError("Input file should be provided.")
    input_file = Path(config["phrp"]["input_file"])
    if not input_file.is_file():
        raise FileNotFoundError(input_file)
    config["phrp"]["input_file"] = input_file.as_posix()

    # parameter_file and index to scan map file should either be None or existing files
    for key in ["parameter_file", "mgf_index_to_scan_map_file"]:
        if config["phrp"][key]:
            path = Path(config["phrp"][key])
            if not path.is_file():
                raise FileNotFoundError(path)
            config["phrp"][key] = path.as_posix()

    config["phrp"]["output_path"] = _parse_output_path(
        config["phrp"]["output_path"], config["phrp"]["input_file"]
    )

    return config


def _validate_search_tool(config: Dict) -> Dict:
    """Infer the search tool from the input filename, if required."""
    search_tool = config["phrp"]["search_tool"].lower()
    if search_tool == "infer":
        search_tool = infer_search_tool(config["phrp"]["input_file"])
        if not search_tool:
            raise PHRPConfigurationError(
                "Could not infer search tool from input filename "
                f"`{config['phrp']['input_file']}`. Please set `search_tool` explicitly."
            )
    config["phrp"]["search_tool"] = search_tool
    return config


def parse_configurations(configurations: List[Union[dict, str, Path, Namespace]]) -> Dict:
    """
    Parse and validate PHRP configuration files and arguments.

    Default configuration, user configuration files, and class arguments are parsed
    in cascading order, with each successive configuration taking priority over the
    previous.

    Parameters
    ----------
    configurations: Dict, str, Path, Namespace, List[Dict, str, Path, Namespace]
        configuration dictionary, path to configuration files, argparse Namespace, or a list of the
        above.
    """
    if not isinstance(configurations, list):
        configurations = [configurations]

    # Initialize CascadeConfig with validation schema and defaults
    config_schema = importlib.resources.open_text(package_data, "config_schema.json")
    config_default = importlib.resources.open_text(package_data, "config_default.json")
    cascade_conf = CascadeConfig(
        validation_schema=json.load(config_schema),
        none_overrides_value=False,
        max_recursion_depth=1,
    )
    cascade_conf.add_dict(json.load(config_default))

    # Add configurations
    for config in configurations:
        if isinstance(config, dict):
            cascade_conf.add_dict(config)
        elif isinstance(config, str) or isinstance(config, Path):
            if Path(config).suffix.lower() == ".json":
                cascade_conf.add_json(config)
            elif Path(config).suffix.lower() == ".toml":
                cascade_conf.add_dict(dict(tomllib.load(Path(config).open("rb"))))
            else:
                raise PHRPConfigurationError(
                    "Unknown file extension for configuration file. Should be `json` or `toml`."
                )
        elif isinstance(config, Namespace):
            cascade_conf.add_namespace(config, subkey="phrp")
        else:
            raise ValueError(
                "Configuration should be a dictionary, argparse Namespace, or path to a "
                "configuration file."
            )

    # Parse configurations
    config = cascade_conf.parse()

    # Validate and infer filenames and search tool
    config = _validate_filenames(config)
    config = _validate_search_tool(config)

    return config
