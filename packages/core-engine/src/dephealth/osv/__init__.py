"""OSV.dev integration module for DepHealth."""

from dephealth.osv.client import OSVClient

__all__ = ["OSVClient"]
