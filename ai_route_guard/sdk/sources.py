"""
Provider catalog sources (the ``listProviders`` collaborator).
"""

from typing import Iterable, List

from ai_route_guard.core.providers import Provider


class StaticProviderSource:
    """Catalog fixed at construction time, e.g. from the YAML config."""

    def __init__(self, providers: Iterable[Provider]):
        self._providers = list(providers)

    def list_providers(self) -> List[Provider]:
        return list(self._providers)

    __call__ = list_providers
