"""Helper fixtures for constructing deterministic scheduling instances."""

from .synthetic_instances import (
    generate_synthetic_instance,
    shared_resource_instance,
    single_machine_instance,
)

__all__ = [
    "generate_synthetic_instance",
    "shared_resource_instance",
    "single_machine_instance",
]
