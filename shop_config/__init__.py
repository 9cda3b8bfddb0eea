"""
shop_config -- single public entrypoint for shop configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.  YAML loading is internal tooling.

Architecture position:
    Configuration -- sits above ``shop_kernel``.  The kernel MUST NEVER
    import from ``shop_config``; ``shop_config.bridges`` translates the
    configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- configuration directory or ``site.yaml``
      missing.
    - ``ValueError`` -- validation failures.

Every successful call emits a ``SHOP_CONFIG_TRACE`` log entry with the
config id, version, checksum and seed record counts.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shop_config.loader import load_configuration
from shop_config.schema import ShopConfiguration
from shop_config.validator import validate_configuration

_logger = logging.getLogger("shop_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "defaults"


def get_active_config(config_dir: Path | None = None) -> ShopConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Directory holding ``site.yaml`` and ``seed.yaml``.
            Defaults to shop_config/defaults/.

    Raises:
        FileNotFoundError: If the directory or ``site.yaml`` is missing.
        ValueError: If configuration validation fails.
    """
    directory = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    if not directory.is_dir():
        raise FileNotFoundError(f"Configuration directory not found: {directory}")

    config = load_configuration(directory)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    seed = config.seed
    _logger.info(
        "SHOP_CONFIG_TRACE",
        extra={
            "trace_type": "SHOP_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "site_name": config.site.site_name,
            "employee_count": len(seed.employees),
            "asset_count": len(seed.assets),
            "part_count": len(seed.parts),
        },
    )
    return config


__all__ = [
    "ShopConfiguration",
    "get_active_config",
]
