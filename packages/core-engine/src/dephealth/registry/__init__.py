"""npm registry integration module for DepHealth."""

from dephealth.registry.client import NpmRegistryClient

__all__ = ["NpmRegistryClient"]
