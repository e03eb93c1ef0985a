#!/usr/bin/env python3
"""
Planner Configuration Module

Loads planner parameters and named configurations from the constraints YAML
file and exposes them as parameter dataclasses:
- CRRTPlannerParameters for constrained bidirectional planning
- VectorFieldPlannerParameters for straight end-effector motions
- Named joint configurations (e.g. "home", "ready")

Missing files or sections fall back to built-in defaults with a warning.

Author: Robot Control Team
"""

import copy
import numpy as np
import logging
import os
from dataclasses import dataclass, fields
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)


class PlannerConfigError(Exception):
    """Malformed planner configuration."""
    pass


@dataclass
class CRRTPlannerParameters:
    """Parameters of the constrained bidirectional planner."""
    rng: Optional[Any] = None
    max_num_trials: int = 20
    max_extension_distance: float = 0.5
    max_distance_btw_projections: float = 0.1
    min_step_size: float = 0.05
    min_tree_connection_distance: float = 0.1
    projection_tolerance: float = 1e-4
    projection_max_iteration: int = 20

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]], rng=None) -> "CRRTPlannerParameters":
        return _from_section(cls, section, rng=rng)


@dataclass
class VectorFieldPlannerParameters:
    """Parameters of the vector field planner."""
    negative_distance_tolerance: float = 0.01
    positive_distance_tolerance: float = 0.01
    initial_step_size: float = 1e-3
    joint_limit_tolerance: float = 1e-3
    constraint_check_resolution: float = 1e-3

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "VectorFieldPlannerParameters":
        params = _from_section(cls, section)
        if params.negative_distance_tolerance < 0 or params.positive_distance_tolerance < 0:
            raise PlannerConfigError("Distance tolerances must be non-negative")
        return params


def _from_section(cls, section: Optional[Dict[str, Any]], **overrides):
    section = section or {}
    known = {f.name for f in fields(cls)}
    unknown = set(section) - known
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
    values = {k: v for k, v in section.items() if k in known}
    values.update({k: v for k, v in overrides.items() if v is not None})
    return cls(**values)


DEFAULT_PLANNER_CONFIG = {
    'timelimit': 5.0,
    'collision_resolution': 0.1,
    'max_snap_samples': 100,
    'max_num_trials': 10,
    'rrt': {
        'max_extension_distance': None,
        'simplify': True,
    },
    'crrt': {},
    'vector_field': {},
    'offset': {
        'position_tolerance': 1e-3,
        'angular_tolerance': 1e-3,
    },
}


def get_default_config_path() -> str:
    """Get default path to constraints configuration."""
    possible_paths = [
        os.path.join(os.path.dirname(__file__), "..", "..", "config", "constraints.yaml"),
        os.path.join(os.path.dirname(__file__), "..", "config", "constraints.yaml"),
        os.path.join(os.path.dirname(__file__), "constraints.yaml")
    ]

    for path in possible_paths:
        abs_path = os.path.abspath(path)
        if os.path.exists(abs_path):
            return abs_path

    return os.path.abspath(possible_paths[0])


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Whole constraints file as a dictionary, empty when missing or unreadable."""
    config_path = config_path or get_default_config_path()
    if not os.path.exists(config_path):
        logger.warning(f"Configuration file not found: {config_path}, using defaults")
        return {}

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration from {config_path}: {e}")
        return {}

    logger.info(f"Configuration loaded from: {config_path}")
    return config or {}


def load_planner_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """``planner`` section merged over the defaults."""
    planner_section = load_yaml_config(config_path).get('planner', {}) or {}
    return merge_config(DEFAULT_PLANNER_CONFIG, planner_section)


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive dictionary merge returning a new dictionary."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_named_configurations(node: Optional[Dict[str, Any]]) -> Dict[str, np.ndarray]:
    """
    Map of configuration name to joint vector.

    Args:
        node: Mapping ``name -> [q1, q2, ...]`` as read from YAML

    Raises:
        PlannerConfigError: if the node is not a mapping or a value is not a
            flat list of numbers
    """
    if node is None:
        return {}
    if not isinstance(node, dict):
        raise PlannerConfigError("Named configurations must be a mapping of name to joint list")

    configurations = {}
    for name, values in node.items():
        if not isinstance(values, (list, tuple)):
            raise PlannerConfigError(f"Configuration '{name}' must be a list of joint values")
        try:
            vector = np.array(values, dtype=float)
        except (TypeError, ValueError) as e:
            raise PlannerConfigError(f"Configuration '{name}' has non-numeric values: {e}")
        if vector.ndim != 1:
            raise PlannerConfigError(f"Configuration '{name}' must be a flat list")
        configurations[str(name)] = vector
    return configurations


def load_named_configurations(config_path: Optional[str] = None) -> Dict[str, np.ndarray]:
    """Named configurations from the ``named_configurations`` section."""
    configurations = parse_named_configurations(
        load_yaml_config(config_path).get('named_configurations'))
    logger.info(f"Loaded {len(configurations)} named configuration(s)")
    return configurations
