"""Exceptions raised at DepHealth's boundaries."""


class ManifestError(ValueError):
    """The manifest is syntactically valid JSON but not a usable manifest."""


class ProviderError(RuntimeError):
    """An upstream data provider (registry, OSV, report file) failed."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
