"""
Shared CLI helpers
"""

from pathlib import Path
from typing import List, Sequence

from ..core.config import Config
from ..pipelines.kernel import KernelContext, get_kernel_context, init_kernel
from ..services.catalog import CatalogProvider, HttpCatalogProvider, StaticCatalogProvider

DEFAULT_CATALOG = Path("config/sample_catalog.json")


def kernel_context() -> KernelContext:
    """The process kernel context, initialized on first use."""
    try:
        return get_kernel_context()
    except RuntimeError:
        return init_kernel()


def catalog_providers(catalog_files: Sequence[str]) -> List[CatalogProvider]:
    """
    Providers for the given JSON exports, plus the HTTP catalog when
    CATALOG_API_URL is set. Falls back to the bundled sample catalog.
    """
    providers: List[CatalogProvider] = [StaticCatalogProvider.from_json(path) for path in catalog_files]

    if Config.CATALOG_API_URL:
        providers.append(HttpCatalogProvider("catalog_api"))

    if not providers:
        providers.append(StaticCatalogProvider.from_json(DEFAULT_CATALOG, name="sample"))

    return providers
