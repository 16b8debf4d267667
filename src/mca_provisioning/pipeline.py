"""Publish result values as output variables for a calling pipeline."""
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class OutputFormat(str, Enum):
    AZURE_DEVOPS = "azure-devops"
    GITHUB = "github"
    NONE = "none"


def azure_devops_commands(variables: Mapping[str, str]) -> list[str]:
    """Render Azure Pipelines ``task.setvariable`` logging commands."""
    return [
        f"##vso[task.setvariable variable={name};isOutput=true]{_escape_vso(value)}"
        for name, value in variables.items()
    ]


def _escape_vso(value: str) -> str:
    return value.replace("%", "%AZP25").replace("\r", "%0D").replace("\n", "%0A")


def write_github_outputs(variables: Mapping[str, str], output_path: str | Path) -> None:
    path = Path(output_path)
    with path.open("a", encoding="utf-8") as handle:
        for name, value in variables.items():
            handle.write(f"{name}={value}\n")


def publish_outputs(
    variables: Dict[str, str],
    output_format: OutputFormat,
    emit: Callable[[str], None],
    github_output: Optional[str] = None,
) -> None:
    if output_format is OutputFormat.AZURE_DEVOPS:
        for line in azure_devops_commands(variables):
            emit(line)
    elif output_format is OutputFormat.GITHUB:
        if not github_output:
            logger.warning("GITHUB_OUTPUT is not set; skipping output variables")
            return
        write_github_outputs(variables, github_output)
    logger.debug("Published output variables: %s", ", ".join(variables))
