from __future__ import annotations

from collections.abc import Iterator, Mapping

from .config import RESERVED_CONTENT_TYPE, SiteConfig
from .content import PageInfo


class Collections(Mapping[str, tuple[str, ...]]):
    """Mapping of content type to the ordered URLs of its pages.

    Collections hold URL keys rather than PageInfo objects so a collection can
    never point into a registry that has since been replaced; resolve them
    against the registry they were built from.
    """

    def __init__(self, mapping: Mapping[str, tuple[str, ...]] | None = None):
        self._mapping = {k: tuple(v) for k, v in (mapping or {}).items()}

    def __getitem__(self, key: str) -> tuple[str, ...]:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def resolve(self, name: str, pages: Mapping[str, PageInfo]) -> list[PageInfo]:
        """Return the PageInfo records of a collection, in collection order."""
        return [pages[url] for url in self._mapping.get(name, ()) if url in pages]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Collections({', '.join(f'{k}={len(v)}' for k, v in self._mapping.items())})"


def sort_pages(pages: list[PageInfo], sort_by: str = "date", descending: bool = True) -> list[PageInfo]:
    """Sort pages by the raw string value of a front matter field.

    Comparison is lexical; a missing field sorts as the empty string. The sort
    is stable, so ties keep discovery order.
    """
    return sorted(pages, key=lambda p: p.frontmatter.get(sort_by, ""), reverse=descending)


def build_collections(pages: Mapping[str, PageInfo], config: SiteConfig) -> Collections:
    """Group pages by content type and sort each group.

    Pages of the reserved ``pages`` type are not part of any collection.

    Args:
        pages: The url -> PageInfo registry, in discovery order.
        config: Site configuration with per-collection sort overrides.

    Returns:
        Collections keyed by content type.
    """
    grouped: dict[str, list[PageInfo]] = {}
    for page in pages.values():
        if page.content_type == RESERVED_CONTENT_TYPE:
            continue
        grouped.setdefault(page.content_type, []).append(page)

    ordered: dict[str, tuple[str, ...]] = {}
    for name, members in grouped.items():
        options = config.collection(name)
        members = sort_pages(members, options.sort_by, options.descending)
        ordered[name] = tuple(p.url for p in members)
    return Collections(ordered)
