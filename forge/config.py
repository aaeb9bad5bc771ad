"""Site configuration for Forge.

The manifest ``forge.yaml`` at the project root is loaded once at startup.
Known keys map onto ``SiteConfig`` fields; the whole document is also kept
as ``data`` so templates can reach arbitrary custom values through ``site``.

Key functions:
- load_config: Load and validate ``forge.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "forge.yaml"
BASE_TEMPLATE = "base.html"
RESERVED_CONTENT_TYPE = "pages"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "content",
    "templates_dir": "templates",
    "static_dir": "static",
    "output_dir": "dist",
    "port": 8080,
    "ws_port": 8081,
}


@dataclass(frozen=True)
class CollectionConfig:
    """Per-collection overrides.

    Attributes:
        name: Collection (content type) name.
        sort_by: Front matter field used as the sort key.
        sort_order: ``"desc"`` or ``"asc"``.
        template: Template filename overriding ``<name>.html``.
        url_pattern: Kept for manifests that declare it; routing ignores it.
    """

    name: str
    sort_by: str = "date"
    sort_order: str = "desc"
    template: str = ""
    url_pattern: str = ""

    @property
    def descending(self) -> bool:
        return self.sort_order != "asc"


@dataclass(frozen=True)
class MinifyConfig:
    html: bool = True
    css: bool = True
    js: bool = True


@dataclass(frozen=True)
class SiteConfig:
    """Process-wide configuration loaded from ``forge.yaml``."""

    project_root: Path
    site_name: str = ""
    author: str = ""
    description: str = ""
    url: str = ""
    keywords: list[str] = field(default_factory=list)
    github_url: str = ""
    x_twitter_url: str = ""
    content_dir: str = DEFAULT_CONFIG["content_dir"]
    templates_dir: str = DEFAULT_CONFIG["templates_dir"]
    static_dir: str = DEFAULT_CONFIG["static_dir"]
    output_dir: str = DEFAULT_CONFIG["output_dir"]
    port: int = DEFAULT_CONFIG["port"]
    ws_port: int = DEFAULT_CONFIG["ws_port"]
    collections: dict[str, CollectionConfig] = field(default_factory=dict)
    defaults: dict[str, str] = field(default_factory=dict)
    minify_output: bool = False
    minify: MinifyConfig = field(default_factory=MinifyConfig)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def content_path(self) -> Path:
        return self.project_root / self.content_dir

    @property
    def templates_path(self) -> Path:
        return self.project_root / self.templates_dir

    @property
    def static_path(self) -> Path:
        return self.project_root / self.static_dir

    @property
    def output_path(self) -> Path:
        return self.project_root / self.output_dir

    @property
    def base_template_path(self) -> Path:
        return self.templates_path / BASE_TEMPLATE

    def collection(self, name: str) -> CollectionConfig:
        """Return the config for a collection, falling back to defaults."""
        return self.collections.get(name) or CollectionConfig(name=name)

    def site_variables(self) -> dict[str, Any]:
        """Build the ``site`` namespace exposed to templates.

        The raw manifest document is the base so custom keys are reachable,
        with ``defaults`` merged in and ``name``/``title`` aliases for
        ``site_name``.
        """
        site: dict[str, Any] = dict(self.data)
        for key, value in self.defaults.items():
            site.setdefault(key, value)
        site.setdefault("name", self.site_name)
        site.setdefault("title", self.site_name)
        site.setdefault("keywords", list(self.keywords))
        return site


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from forge.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        The parsed SiteConfig.

    Raises:
        ConfigError: If the manifest is missing, unparseable or malformed.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        raise ConfigError("Config file not found", config_path)
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}", config_path, exc) from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config: {exc}", config_path, exc) from exc

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError("Top-level document must be a mapping", config_path)

    merged = {**DEFAULT_CONFIG, **{k: v for k, v in loaded.items() if v is not None}}

    try:
        return SiteConfig(
            project_root=project_root,
            site_name=_as_str(merged.get("site_name")),
            author=_as_str(merged.get("author")),
            description=_as_str(merged.get("description")),
            url=_as_str(merged.get("url")),
            keywords=[_as_str(k) for k in _as_list(merged.get("keywords"))],
            github_url=_as_str(merged.get("github_url")),
            x_twitter_url=_as_str(merged.get("x_twitter_url")),
            content_dir=_as_str(merged["content_dir"]),
            templates_dir=_as_str(merged["templates_dir"]),
            static_dir=_as_str(merged["static_dir"]),
            output_dir=_as_str(merged["output_dir"]),
            port=int(merged["port"]),
            ws_port=int(merged["ws_port"]),
            collections=_parse_collections(merged.get("collections")),
            defaults={
                str(k): _as_str(v) for k, v in _as_mapping(merged.get("defaults")).items()
            },
            minify_output=bool(merged.get("minify_output", False)),
            minify=_parse_minify(merged.get("minify")),
            data=loaded,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration: {exc}", config_path, exc) from exc


def _parse_collections(raw: Any) -> dict[str, CollectionConfig]:
    collections: dict[str, CollectionConfig] = {}
    for name, options in _as_mapping(raw).items():
        options = _as_mapping(options)
        collections[str(name)] = CollectionConfig(
            name=str(name),
            sort_by=_as_str(options.get("sort_by")) or "date",
            sort_order=_as_str(options.get("sort_order")) or "desc",
            template=_as_str(options.get("template")),
            url_pattern=_as_str(options.get("url_pattern")),
        )
    return collections


def _parse_minify(raw: Any) -> MinifyConfig:
    options = _as_mapping(raw)
    return MinifyConfig(
        html=bool(options.get("html", True)),
        css=bool(options.get("css", True)),
        js=bool(options.get("js", True)),
    )


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_mapping(value: Any) -> dict[Any, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"expected a mapping, got {type(value).__name__}")
    return value
