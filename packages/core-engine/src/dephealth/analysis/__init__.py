"""Dependency health analysis: classification, normalization and assembly."""
