"""Map service names onto the fixed subscription categories."""

from __future__ import annotations

from .catalog import DEFAULT_CATALOG, DEFAULT_CATEGORY, ServiceCatalog


class CategoryMapper:
    """Assign one category per service via lookup, then keyword families."""

    def __init__(self, catalog: ServiceCatalog = DEFAULT_CATALOG) -> None:
        self._catalog = catalog

    def categorize(self, service_name: str | None) -> str:
        """Return the category for ``service_name``; never ``None``."""
        if not service_name:
            return DEFAULT_CATEGORY
        name = service_name.strip().lower()
        if not name:
            return DEFAULT_CATEGORY

        for service, category in self._catalog.service_categories:
            if service in name:
                return category

        for category, keywords in self._catalog.keyword_families:
            if any(keyword in name for keyword in keywords):
                return category

        return DEFAULT_CATEGORY

    def normalize(self, category: str | None, service_name: str | None) -> str:
        """Keep a specific, known ``category``; otherwise derive one."""
        if (
            category
            and category != DEFAULT_CATEGORY
            and category in self._catalog.categories
        ):
            return category
        return self.categorize(service_name)


_DEFAULT_MAPPER = CategoryMapper()


def categorize(service_name: str | None) -> str:
    """Categorise ``service_name`` using the default catalog."""
    return _DEFAULT_MAPPER.categorize(service_name)


__all__ = ["CategoryMapper", "categorize"]
