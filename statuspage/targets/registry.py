"""Target registry — loads targets.yaml into an ordered, immutable target list.

The registry order is the order of items in the status API, so parsing keeps
file order and the first occurrence of an id wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from statuspage.config import settings

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "default"

# Shares the key namespace with per-target results (status:overall)
RESERVED_ID = "overall"


# ── Data models ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Target:
    """An endpoint probed every check cycle."""

    id: str
    group: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "group": self.group, "url": self.url}


# ── Registry ─────────────────────────────────────────────────────────────────


class TargetRegistry:
    """Loads and caches targets from a YAML file or an explicit list."""

    def __init__(
        self,
        path: Path | None = None,
        targets: list[Target] | None = None,
    ) -> None:
        self._path = path or Path(settings.targets_file)
        self._targets: list[Target] = []
        self._loaded = False
        if targets is not None:
            self._targets = _dedupe(targets)
            self._loaded = True

    def load(self, force: bool = False) -> list[Target]:
        """Parse the targets file and return the Target list."""
        if self._loaded and not force:
            return self._targets

        self._targets = []
        if not self._path.exists():
            logger.warning("Targets file not found: %s", self._path)
            self._loaded = True
            return self._targets

        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except Exception as e:
            logger.error("Failed to parse %s: %s", self._path, e)
            self._loaded = True
            return self._targets

        if not isinstance(raw, dict):
            logger.error(
                "Expected a mapping with a 'targets' list in %s, got %s",
                self._path, type(raw).__name__,
            )
            self._loaded = True
            return self._targets

        parsed = []
        for entry in raw.get("targets", []) or []:
            try:
                parsed.append(_parse_target(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed target entry: %s", e)

        self._targets = _dedupe(parsed)
        self._loaded = True
        logger.info("Loaded %d targets from %s", len(self._targets), self._path)
        return self._targets

    @property
    def targets(self) -> list[Target]:
        return self.load()

    def get(self, target_id: str) -> Target | None:
        return next((t for t in self.targets if t.id == target_id), None)

    def by_group(self) -> dict[str, list[Target]]:
        groups: dict[str, list[Target]] = {}
        for t in self.targets:
            groups.setdefault(t.group, []).append(t)
        return groups

    def to_dict(self) -> list[dict[str, Any]]:
        return [t.to_dict() for t in self.targets]

    def __len__(self) -> int:
        return len(self.targets)


# ── Parsers ──────────────────────────────────────────────────────────────────


def _parse_target(raw: dict[str, Any]) -> Target:
    if not isinstance(raw, dict):
        raise TypeError(f"expected a mapping, got {type(raw).__name__}")

    target_id = str(raw.get("id") or "").strip()
    url = str(raw.get("url") or "").strip()
    if not target_id:
        raise ValueError("target 'id' is required")
    if target_id == RESERVED_ID:
        raise ValueError(f"target id '{RESERVED_ID}' is reserved for the overall verdict")
    if not url:
        raise ValueError(f"target '{target_id}' has no 'url'")

    return Target(
        id=target_id,
        group=str(raw.get("group") or DEFAULT_GROUP),
        url=url,
    )


def _dedupe(targets: list[Target]) -> list[Target]:
    seen: set[str] = set()
    result = []
    for t in targets:
        if t.id == RESERVED_ID:
            logger.warning("Skipping target with reserved id '%s'", t.id)
            continue
        if t.id in seen:
            logger.warning("Duplicate target id '%s' — keeping the first entry", t.id)
            continue
        seen.add(t.id)
        result.append(t)
    return result
