#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration Loading Utility for realschur.

This module provides functions to load and validate a pipeline configuration
from a YAML file and to read the input matrix it refers to.
"""
import yaml
import logging
import os
import numpy as np
import numpy.typing as npt
from pydantic import ValidationError

from .schema import PipelineConfig

logger = logging.getLogger(__name__)


def load_pipeline_config(filepath: str) -> PipelineConfig:
    """
    Loads and validates the pipeline configuration from a YAML file.

    The path of the input matrix is resolved relative to the location of the
    configuration file.

    Args:
        filepath (str): The path to the YAML configuration file.

    Returns:
        PipelineConfig: The validated configuration.

    Raises:
        FileNotFoundError: If the configuration file is not found.
        ValueError: If there's an error parsing the YAML or if the content
                    does not match the configuration schema.
    """
    logger.info(f"Loading pipeline configuration from: {filepath}")
    try:
        with open(filepath, "r") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {filepath}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file {filepath}: {e}")
        raise ValueError(f"Invalid YAML format in {filepath}") from e

    if not isinstance(raw, dict):
        raise ValueError(f"Configuration in {filepath} must be a mapping, got {type(raw).__name__}")

    try:
        config = PipelineConfig.model_validate(raw)
    except ValidationError as e:
        logger.error(f"Configuration {filepath} failed validation:\n{e}")
        raise ValueError(f"Invalid configuration in {filepath}: {e}") from e

    matrix_file = config.input.matrix_file
    if not os.path.isabs(matrix_file):
        base_dir = os.path.dirname(os.path.abspath(filepath))
        config.input.matrix_file = os.path.join(base_dir, matrix_file)

    logger.info("Configuration loaded and validated successfully.")
    return config


def load_matrix(filepath: str) -> npt.NDArray[np.float64]:
    """
    Read a square matrix from a `.npy` file or a whitespace/comma separated text file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the content is not a square, finite, real matrix.
    """
    if not os.path.exists(filepath):
        logger.error(f"Matrix file not found: {filepath}")
        raise FileNotFoundError(filepath)

    if filepath.endswith(".npy"):
        data = np.load(filepath, allow_pickle=False)
    else:
        with open(filepath, "r") as f:
            first = f.readline()
        delimiter = "," if "," in first else None
        data = np.loadtxt(filepath, delimiter=delimiter, ndmin=2)

    if np.iscomplexobj(data):
        raise ValueError(f"Matrix in {filepath} is complex; only real matrices are supported")
    A = np.array(data, dtype=np.float64, order="F")
    if A.ndim != 2 or A.shape[0] != A.shape[1] or A.shape[0] == 0:
        raise ValueError(f"Matrix in {filepath} must be square and non-empty, got shape {A.shape}")
    if not np.all(np.isfinite(A)):
        raise ValueError(f"Matrix in {filepath} contains non-finite values")
    logger.info(f"Loaded a {A.shape[0]}x{A.shape[1]} matrix from {filepath}")
    return A
