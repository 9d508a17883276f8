"""Command line interface for the graph feature pipeline.

This script defines the packaged `graph-fm` entry point and its subcommands.
It loads a YAML or JSON configuration file, applies a small set of command line
overrides (seed, output directory), and then calls the pipeline in
`graph_fm.pipeline` to produce run artefacts on disk.

The `compute` command builds the graph, attaches the configured derived
features, exports feature tables and, when ground truth is configured, scores
candidate edges. The `features` command lists the registered feature types,
neighbor strategies and similarity measures. Relative paths in the
configuration are resolved relative to the configuration file location.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any, Callable

import yaml

from graph_fm import pipeline as pipeline_module
from graph_fm.errors import GraphFeatureError
from graph_fm.logging_utils import configure_logging, log_exception
from graph_fm.registry import default_registry

logger = logging.getLogger(__name__)


def _load_configuration(config_path: str) -> tuple[dict[str, Any], str]:
    """Load a configuration mapping from a YAML or JSON file.

    The raw configuration text is returned as well so it can be stored as a
    run artefact without losing comments or formatting from the input file.
    The function raises ``ValueError`` if the file does not parse to a mapping.
    """

    with open(config_path, "r", encoding="utf-8") as config_file:
        configuration_text = config_file.read()

    if config_path.endswith((".yaml", ".yml")):
        configuration = yaml.safe_load(configuration_text)
    elif config_path.endswith(".json"):
        configuration = json.loads(configuration_text)
    else:
        raise ValueError("Config file must end with .yaml, .yml, or .json.")

    if not isinstance(configuration, dict):
        raise ValueError("Config file must contain a mapping at the top level.")

    return configuration, configuration_text


def _get_required_mapping_value(configuration: dict[str, Any], dotted_key: str) -> Any:
    """Retrieve a nested configuration value using dotted key notation.

    A dotted key such as ``data.dir`` is interpreted as nested dictionaries.
    The function raises ``ValueError`` if any part of the path is missing.
    """

    value: Any = configuration
    for key_part in dotted_key.split("."):
        if not isinstance(value, dict) or key_part not in value:
            raise ValueError(f"Config is missing required field: {dotted_key}")
        value = value[key_part]
    return value


def _validate_compute_configuration(configuration: dict[str, Any]) -> None:
    """Validate that the configuration contains the fields used by the pipeline.

    Feature entries are checked for their ``id`` and ``type`` keys here so that
    mistakes are reported before any data is loaded.
    """

    required_keys = [
        "seed",
        "artifacts_dir",
        "data.dir",
        "data.nodes_csv",
        "data.edges_csv",
    ]
    for required_key in required_keys:
        _get_required_mapping_value(configuration, required_key)

    features = configuration.get("features") or []
    if not isinstance(features, list):
        raise ValueError("Config field 'features' must be a list.")
    for position, entry in enumerate(features):
        if not isinstance(entry, dict) or "id" not in entry or "type" not in entry:
            raise ValueError(f"Feature entry {position} needs 'id' and 'type' keys.")

    if configuration["data"].get("ground_truth_csv"):
        _get_required_mapping_value(configuration, "scoring.features")


def _resolve_path_relative_to_directory(base_directory: str, path_value: str) -> str:
    """Resolve a path value relative to a base directory."""

    if os.path.isabs(path_value):
        return path_value
    return os.path.normpath(os.path.join(base_directory, path_value))


def _prepare_configuration_for_run(
    configuration: dict[str, Any],
    configuration_text: str,
    config_path: str,
    seed_override: int | None,
    output_directory_override: str | None,
) -> dict[str, Any]:
    """Apply CLI overrides and path resolution to a loaded configuration."""

    configuration["_config_text"] = configuration_text

    if seed_override is not None:
        configuration["seed"] = int(seed_override)
    if output_directory_override is not None:
        configuration["artifacts_dir"] = os.path.abspath(output_directory_override)

    configuration_directory = os.path.dirname(os.path.abspath(config_path))
    configuration["artifacts_dir"] = _resolve_path_relative_to_directory(
        configuration_directory, str(configuration["artifacts_dir"])
    )
    configuration["data"]["dir"] = _resolve_path_relative_to_directory(
        configuration_directory, str(configuration["data"]["dir"])
    )

    return configuration


def _command_compute(arguments: argparse.Namespace) -> int:
    """Handle the ``compute`` subcommand by running the pipeline."""

    configuration, configuration_text = _load_configuration(arguments.config)
    _validate_compute_configuration(configuration)
    prepared_configuration = _prepare_configuration_for_run(
        configuration=configuration,
        configuration_text=configuration_text,
        config_path=arguments.config,
        seed_override=arguments.seed,
        output_directory_override=arguments.output_dir,
    )
    summary = pipeline_module.run(prepared_configuration)
    test_metrics = summary.get("test", {})
    if "roc_auc" in test_metrics:
        print(f"Test ROC-AUC: {test_metrics['roc_auc']}")
    return 0


def _command_features(arguments: argparse.Namespace) -> int:
    """Handle the ``features`` subcommand by listing registered implementations."""

    registry = default_registry()
    kinds = [arguments.kind] if arguments.kind else registry.kinds()
    for kind in kinds:
        print(f"{kind}:")
        for name in sorted(registry.list(kind)):
            print(f"  {name}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Create the top-level argument parser with subcommands."""

    parser = argparse.ArgumentParser(prog="graph-fm")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for library messages.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    compute_parser = subparsers.add_parser(
        "compute", help="Build the graph, compute features and score candidates."
    )
    compute_parser.add_argument(
        "--config",
        required=True,
        help="Path to a YAML or JSON configuration file.",
    )
    compute_parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Optional random seed override.",
    )
    compute_parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Optional output directory override for run artefacts.",
    )
    compute_parser.set_defaults(handler=_command_compute)

    features_parser = subparsers.add_parser(
        "features", help="List registered features, neighbors and similarities."
    )
    features_parser.add_argument(
        "--kind",
        choices=list(default_registry().kinds()),
        default=None,
        help="Only list one kind of registered implementation.",
    )
    features_parser.set_defaults(handler=_command_features)

    return parser


def main(argument_list: list[str] | None = None) -> int:
    """Entry point for the ``graph-fm`` console script.

    The function returns an integer exit code so it can be tested without
    spawning a subprocess. Configuration and data errors return code 2, which
    matches the conventional behaviour of ``argparse`` for invalid input.
    """

    parser = _build_parser()
    try:
        arguments = parser.parse_args(argument_list)
    except SystemExit as system_exit_exception:
        return (
            int(system_exit_exception.code)
            if system_exit_exception.code is not None
            else 1
        )

    configure_logging(getattr(logging, arguments.log_level))
    handler: Callable[[argparse.Namespace], int] = arguments.handler
    try:
        return int(handler(arguments))
    except (FileNotFoundError, ValueError, GraphFeatureError) as exception:
        log_exception(logger, exception, {"command": arguments.command})
        return 2


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
