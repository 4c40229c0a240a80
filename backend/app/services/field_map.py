from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

import logging
import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

SECTIONS = ("general", "hero", "about", "services", "testimonials", "contact", "footer")
LIST_ITEMS_KEY = "items"


class Locator(BaseModel):
    model_config = ConfigDict(frozen=True)

    selector: str
    attr: Optional[str] = None
    prefix: str = ""

    @property
    def is_link(self) -> bool:
        return self.attr is not None


class ListSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    container: str
    kind: str = Field(pattern="^(services|testimonials)$")


class SectionSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    container: str
    locators: Dict[str, Locator] = Field(default_factory=dict, alias="fields")
    image: Optional[Locator] = None
    list_block: Optional[ListSpec] = Field(default=None, alias="list")


class LocatorTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int
    aliases: Dict[str, str] = Field(default_factory=dict)
    sections: Dict[str, SectionSpec]

    def canonical_section(self, name: str | None) -> str | None:
        if not name:
            return None
        name = name.strip()
        return self.aliases.get(name, name)

    def section(self, name: str | None) -> SectionSpec | None:
        key = self.canonical_section(name)
        if key is None:
            return None
        return self.sections.get(key)

    def resolve(self, section: str | None, key: str) -> Locator | None:
        spec = self.section(section)
        if spec is None:
            return None
        return spec.locators.get(key)

    def container(self, section: str | None) -> str | None:
        spec = self.section(section)
        return spec.container if spec else None

    def image_locator(self, section: str | None) -> Locator | None:
        spec = self.section(section)
        return spec.image if spec else None

    def list_spec(self, section: str | None) -> ListSpec | None:
        spec = self.section(section)
        return spec.list_block if spec else None

    def pairs(self):
        for name, spec in self.sections.items():
            for key, locator in spec.locators.items():
                yield name, key, locator


_TABLE_CACHE: Optional[LocatorTable] = None


def _default_path() -> Path:
    return Path(__file__).resolve().parent.parent / "site" / "locators.yml"


def load_locator_table(path: Path | None = None) -> LocatorTable:
    path = path or _default_path()
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    table = LocatorTable.model_validate(data)
    unknown = set(table.sections) - set(SECTIONS)
    if unknown:
        raise ValueError(f"unknown sections in locator table: {sorted(unknown)}")
    logger.info("locator_table_loaded path=%s version=%s sections=%s", path, table.version, len(table.sections))
    return table


def get_locator_table() -> LocatorTable:
    global _TABLE_CACHE
    if _TABLE_CACHE is not None:
        return _TABLE_CACHE
    _TABLE_CACHE = load_locator_table()
    return _TABLE_CACHE


def resolve(section: str, key: str) -> Locator | None:
    return get_locator_table().resolve(section, key)


def field_keys(section: str) -> Mapping[str, Locator]:
    spec = get_locator_table().section(section)
    return MappingProxyType(dict(spec.locators) if spec else {})


__all__ = [
    "SECTIONS",
    "LIST_ITEMS_KEY",
    "Locator",
    "ListSpec",
    "SectionSpec",
    "LocatorTable",
    "load_locator_table",
    "get_locator_table",
    "resolve",
    "field_keys",
]
