"""Exceptions raised by provider adapters."""


class AdapterError(Exception):
    """Transport or parse failure at one provider."""

    def __init__(self, provider_id: str, cause: object):
        self.provider_id = provider_id
        self.cause = cause
        super().__init__(f"[{provider_id}] {cause}")
