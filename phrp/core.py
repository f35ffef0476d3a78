import json
import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from phrp.exceptions import PHRPConfigurationError
from phrp.moda import MODaResultsProcessor
from phrp.toppic import TopPICResultsProcessor

logger = logging.getLogger(__name__)

PROCESSORS = {
    "moda": MODaResultsProcessor,
    "toppic": TopPICResultsProcessor,
}


def process(configuration: Dict, abort: Optional[Callable[[], bool]] = None) -> Dict[str, str]:
    """
    Run the full PHRP workflow with passed configuration.

    Parameters
    ----------
    configuration
        Dictionary containing phrp configuration, as returned by
        :py:func:`phrp.config_parser.parse_configurations`.
    abort
        Callable that is polled between lines; processing stops early when it
        returns True.

    Returns
    -------
    Dict[str, str]
        Paths of the written files, by file type.

    """
    logger.debug(
        f"Running PHRP with following configuration: {json.dumps(configuration, indent=4)}"
    )
    config = configuration["phrp"]

    try:
        processor_class = PROCESSORS[config["search_tool"]]
    except KeyError:
        raise PHRPConfigurationError(
            f"Unsupported search tool `{config['search_tool']}`. Should be one of "
            f"{', '.join(PROCESSORS)}."
        )
    processor = processor_class(abort=abort, **config)

    # Write full configuration including defaults to file
    base_name = processor.get_base_name(config["input_file"])
    full_config_file = (Path(config["output_path"]) / (base_name + ".full-config.json")).as_posix()
    with open(full_config_file, "w") as f:
        json.dump(configuration, f, indent=4)

    logger.info("Processing %s results in %s", processor.tool_name, config["input_file"])
    output_files = processor.process_file(config["input_file"])
    output_files["full_config"] = full_config_file

    logger.info("PHRP finished; wrote %i files to %s", len(output_files), config["output_path"])
    return output_files
