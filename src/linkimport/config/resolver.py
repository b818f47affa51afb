"""Layered resolution of linkimport settings.

Settings come from four layers, lowest first: model defaults, the YAML file,
``LINKIMPORT__SECTION__KEY`` environment variables, and dotted CLI overrides
such as ``importer.max_workers``.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Mapping, Sequence

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import LinkImportConfig

ENV_PREFIX = "LINKIMPORT__"


def set_dotted(target: dict[str, Any], path: str | Sequence[str], value: Any) -> None:
    """Store ``value`` under a dotted key, creating intermediate sections.

    Args:
        target: Mapping updated in place.
        path: Dotted key (``"importer.max_workers"``) or its segments.
        value: Value assigned to the last segment.

    Raises:
        ConfigError: If the key is empty or crosses a non-mapping value.
    """
    segments = path.split(".") if isinstance(path, str) else list(path)
    segments = [segment.strip() for segment in segments if segment.strip()]
    if not segments:
        raise ConfigError("Configuration keys must name a section, e.g. 'importer.max_workers'.")

    node = target
    for index, segment in enumerate(segments[:-1]):
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            prefix = ".".join(segments[: index + 1])
            raise ConfigError(f"Cannot set '{'.'.join(segments)}': '{prefix}' is not a section.")
        node = child
    node[segments[-1]] = value


def overrides_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``LINKIMPORT__`` variables into a nested override mapping.

    Values are parsed as YAML so ``8`` becomes an int and ``false`` a bool.
    """
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not segments:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        set_dotted(overrides, segments, value)
    return overrides


def resolve_with_precedence(*layers: Mapping[str, Any] | None) -> LinkImportConfig:
    """Validate the merged override layers; later layers win.

    Nested mappings are merged key by key. Top-level keys may be dotted, which
    is how CLI overrides are expressed.

    Raises:
        ConfigError: If a layer is malformed or the result fails validation.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer is None:
            continue
        if not isinstance(layer, Mapping):
            raise ConfigError("Configuration overrides must be a mapping.")
        for path, value in _leaves(layer):
            set_dotted(merged, path, value)

    try:
        return LinkImportConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: LinkImportConfig) -> dict[str, str]:
    """Render ``config`` as the environment variables that would reproduce it."""
    flat: dict[str, str] = {}
    for path, value in _leaves(config.model_dump(mode="json"), split_keys=False):
        name = ENV_PREFIX + "__".join(segment.upper() for segment in path)
        if isinstance(value, (dict, list)):
            flat[name] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[name] = "null" if value is None else str(value)
    return flat


def _leaves(
    data: Mapping[str, Any], *, split_keys: bool = True
) -> Iterator[tuple[list[str], Any]]:
    # Only top-level keys are split on dots; media type keys such as ".sup" stay intact.
    for key, value in data.items():
        if not isinstance(key, str):
            raise ConfigError("Configuration keys must be strings.")
        path = key.split(".") if split_keys else [key]
        yield from _descend(path, value)


def _descend(path: list[str], value: Any) -> Iterator[tuple[list[str], Any]]:
    if isinstance(value, Mapping) and value:
        for key, child in value.items():
            yield from _descend([*path, str(key)], child)
    else:
        yield path, value


__all__ = [
    "ENV_PREFIX",
    "flatten_for_env",
    "overrides_from_env",
    "resolve_with_precedence",
    "set_dotted",
]
