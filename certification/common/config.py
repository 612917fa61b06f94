"""Workflow configuration.

Loads the YAML file describing fees, the revision quota and scheduling
lead times. Values may reference environment variables (``${VAR}``).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from certification.core.workflow.milestones import DEFAULT_CURRENCY, FeeSchedule
from certification.core.workflow.models import DEFAULT_MAX_FREE_REVISIONS


@dataclass
class RevisionConfig:
    """Revision quota settings."""

    max_free_revisions: int = DEFAULT_MAX_FREE_REVISIONS


@dataclass
class SchedulingConfig:
    """Due dates and lead times, in days."""

    payment_due_days: int = 7
    assessment_lead_days: int = 7


@dataclass
class WorkflowConfig:
    """Top-level workflow configuration."""

    fees: FeeSchedule = field(default_factory=FeeSchedule)
    revisions: RevisionConfig = field(default_factory=RevisionConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)


def _non_negative(value: Any, name: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError(f"{name} must be non-negative, got {number}")
    return number


def parse_fee_config(fees_dict: Dict[str, Any]) -> FeeSchedule:
    """Parse the ``fees`` section.

    Args:
        fees_dict: Mapping with an optional ``currency`` and one amount per
            milestone kind (``DOCUMENT_REVIEW``, ``ASSESSMENT``, ...)

    Returns:
        FeeSchedule instance
    """
    amounts = {k: v for k, v in fees_dict.items() if k != "currency"}
    return FeeSchedule.from_mapping(amounts, currency=fees_dict.get("currency", DEFAULT_CURRENCY))


def parse_config(config_dict: Dict[str, Any]) -> WorkflowConfig:
    """Parse the full configuration dictionary.

    Args:
        config_dict: Full configuration dictionary

    Returns:
        WorkflowConfig instance
    """
    revisions_dict = config_dict.get("revisions", {}) or {}
    scheduling_dict = config_dict.get("scheduling", {}) or {}

    return WorkflowConfig(
        fees=parse_fee_config(config_dict.get("fees", {}) or {}),
        revisions=RevisionConfig(
            max_free_revisions=_non_negative(
                revisions_dict.get("max_free_revisions", DEFAULT_MAX_FREE_REVISIONS),
                "max_free_revisions",
            ),
        ),
        scheduling=SchedulingConfig(
            payment_due_days=_non_negative(scheduling_dict.get("payment_due_days", 7), "payment_due_days"),
            assessment_lead_days=_non_negative(
                scheduling_dict.get("assessment_lead_days", 7), "assessment_lead_days"
            ),
        ),
    )


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(config_path: Optional[str] = None) -> WorkflowConfig:
    """Load and parse configuration into typed dataclasses.

    A missing path or file yields the defaults.
    """
    if not config_path or not Path(config_path).exists():
        return WorkflowConfig()
    return parse_config(load_config(config_path))
