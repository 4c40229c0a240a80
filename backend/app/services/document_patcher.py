from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html import escape
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag

from ..errors import NotFoundError, PatchError
from .field_map import LIST_ITEMS_KEY, ListSpec, Locator, LocatorTable, SectionSpec, get_locator_table

logger = logging.getLogger(__name__)

# html.parser records the line/column of every start tag
PARSER = "html.parser"
INDENT = "    "

_VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)
_NEWLINE = re.compile(r"\n")
_START_TAG = re.compile(r"<([A-Za-z][^\s/>]*)(?:[^>\"']|\"[^\"]*\"|'[^']*')*>")
_ATTRIBUTE = re.compile(r"""(\s+)([^\s"'>/=]+)(?:(\s*=\s*)("[^"]*"|'[^']*'|[^\s"'=<>`]+))?""")


@dataclass
class PatchResult:
    document: str
    section: Optional[str]
    changed: bool = False
    updated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "updated": list(self.updated),
            "skipped": list(self.skipped),
            "ignored": list(self.ignored),
        }


class _Source:
    """
    A parsed document that still knows where each element sits in the
    original text. BeautifulSoup only finds elements; edits are spliced into
    the text so everything outside the edited span stays byte-identical.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.soup = BeautifulSoup(text, PARSER)
        self._lines = [0] + [m.end() for m in _NEWLINE.finditer(text)]

    def start_tag(self, el: Tag) -> re.Match:
        if el.sourceline is None or el.sourcepos is None:
            raise PatchError(f"No source position recorded for <{el.name}>")
        pos = self._lines[el.sourceline - 1] + el.sourcepos
        match = _START_TAG.match(self.text, pos)
        if match is None or match.group(1).lower() != el.name:
            raise PatchError(f"Could not map <{el.name}> back to the document source")
        return match

    def content_span(self, el: Tag) -> Optional[Tuple[int, int]]:
        open_tag = self.start_tag(el)
        if el.name in _VOID_ELEMENTS or open_tag.group(0).endswith("/>"):
            return None
        close = _closing_tag(self.text, el.name, open_tag.end())
        if close is None:
            return None
        return open_tag.end(), close

    def indent_of(self, el: Tag) -> str:
        pos = self.start_tag(el).start()
        lead = self.text[self.text.rfind("\n", 0, pos) + 1:pos]
        return lead if not lead.strip() else ""

    def splice(self, start: int, end: int, replacement: str) -> str:
        return self.text[:start] + replacement + self.text[end:]


def _closing_tag(text: str, name: str, pos: int) -> Optional[int]:
    pattern = re.compile(
        r"<!--.*?-->|<(/?)%s(?=[\s/>])(?:[^>\"']|\"[^\"]*\"|'[^']*')*>" % re.escape(name),
        re.IGNORECASE | re.DOTALL,
    )
    depth = 1
    for m in pattern.finditer(text, pos):
        token = m.group(0)
        if token.startswith("<!--"):
            continue
        if m.group(1):
            depth -= 1
            if depth == 0:
                return m.start()
        elif not token.endswith("/>"):
            depth += 1
    return None


def _quote_attr(value: str, quote: str) -> str:
    return value.replace("&", "&amp;").replace(quote, "&quot;" if quote == '"' else "&#39;")


def _set_attribute(tag_text: str, attr: str, value: str) -> str:
    head = re.match(r"<[^\s/>]+", tag_text)
    for m in _ATTRIBUTE.finditer(tag_text, head.end()):
        if m.group(2).lower() != attr.lower():
            continue
        raw = m.group(4) or ""
        quote = raw[0] if raw[:1] in ("'", '"') else '"'
        new = f"{m.group(1)}{m.group(2)}{m.group(3) or '='}{quote}{_quote_attr(value, quote)}{quote}"
        return tag_text[:m.start()] + new + tag_text[m.end():]
    cut = len(tag_text) - (2 if tag_text.endswith("/>") else 1)
    before, after = tag_text[:cut], tag_text[cut:]
    stripped = before.rstrip()
    return f'{stripped} {attr}="{_quote_attr(value, chr(34))}"{before[len(stripped):]}{after}'


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return ""
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def _apply(source: _Source, el: Tag, locator: Locator, value: str) -> Optional[str]:
    """New document text, or None when the element cannot hold the value."""
    if locator.attr:
        if locator.prefix and not value.startswith(locator.prefix):
            value = f"{locator.prefix}{value}"
        if el.get(locator.attr) == value:
            return source.text
        tag = source.start_tag(el)
        return source.splice(tag.start(), tag.end(), _set_attribute(tag.group(0), locator.attr, value))

    # same text already there: keep the markup, entities included
    if el.find(True) is None and el.get_text() == value:
        return source.text
    span = source.content_span(el)
    if span is None:
        return None
    return source.splice(span[0], span[1], escape(value, quote=False))


def _text_tag(soup: BeautifulSoup, name: str, text: str, css: str | None = None) -> Tag:
    tag = soup.new_tag(name, attrs={"class": css} if css else {})
    tag.string = text
    return tag


def _block(soup: BeautifulSoup, name: str, css: str, children: List[Tag], indent: str, step: str) -> Tag:
    tag = soup.new_tag(name, attrs={"class": css})
    inner = indent + step
    for child in children:
        tag.append(NavigableString("\n" + inner))
        tag.append(child)
    tag.append(NavigableString("\n" + indent))
    return tag


def _field(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    return "" if value is None else str(value)


def _service_card(soup: BeautifulSoup, record: Mapping[str, Any], index: int, indent: str, step: str) -> Tag:
    icon = soup.new_tag("i", attrs={"class": _field(record, "icon") or "fas fa-dumbbell"})
    return _block(
        soup,
        "div",
        "service-card",
        [
            icon,
            _text_tag(soup, "h3", _field(record, "title")),
            _text_tag(soup, "p", _field(record, "description")),
        ],
        indent,
        step,
    )


def _testimonial(soup: BeautifulSoup, record: Mapping[str, Any], index: int, indent: str, step: str) -> Tag:
    author = _block(
        soup,
        "div",
        "testimonial-author",
        [
            _text_tag(soup, "h4", _field(record, "name")),
            _text_tag(soup, "p", _field(record, "info")),
        ],
        indent + step,
        step,
    )
    # slider starts on the first entry
    css = "testimonial active" if index == 0 else "testimonial"
    return _block(
        soup,
        "div",
        css,
        [_text_tag(soup, "p", _field(record, "text"), "testimonial-text"), author],
        indent,
        step,
    )


_BUILDERS: Dict[str, Callable[[BeautifulSoup, Mapping[str, Any], int, str, str], Tag]] = {
    "services": _service_card,
    "testimonials": _testimonial,
}


class DocumentPatcher:
    """
    Edits the published document in memory. Nothing is written to disk here;
    callers persist `PatchResult.document` only when `changed` is set.
    """

    def __init__(self, table: LocatorTable | None = None) -> None:
        self.table = table or get_locator_table()

    @staticmethod
    def _container(source: _Source, name: str, spec: SectionSpec) -> Tag:
        container = source.soup.select_one(spec.container)
        if container is None:
            raise NotFoundError(f"Section '{name}' container {spec.container!r} not found in document")
        return container

    def patch(self, document: str, section: str, payload: Mapping[str, Any] | None) -> PatchResult:
        payload = payload or {}
        name = self.table.canonical_section(section)
        spec = self.table.section(name)
        result = PatchResult(document=document, section=name)
        if spec is None:
            logger.info("patch_unknown_section section=%s", section)
            result.ignored = list(payload.keys())
            return result

        source = _Source(document)
        self._container(source, name, spec)

        list_spec = spec.list_block
        for key, raw in payload.items():
            if key == LIST_ITEMS_KEY and list_spec is not None:
                continue
            locator = spec.locators.get(key)
            if locator is None:
                result.ignored.append(key)
                continue
            value = _as_text(raw)
            if value is None:
                logger.warning("patch_value_not_text section=%s key=%s type=%s", name, key, type(raw).__name__)
                result.skipped.append(key)
                continue
            el = self._container(source, name, spec).select_one(locator.selector)
            if el is None:
                logger.warning("patch_locator_miss section=%s key=%s selector=%s", name, key, locator.selector)
                result.skipped.append(key)
                continue
            text = _apply(source, el, locator, value)
            if text is None:
                logger.warning("patch_no_content_span section=%s key=%s selector=%s", name, key, locator.selector)
                result.skipped.append(key)
                continue
            if text != source.text:
                source = _Source(text)
            result.updated.append(key)

        if list_spec is not None and LIST_ITEMS_KEY in payload:
            container = self._container(source, name, spec)
            text, count = self._regenerate(source, container, list_spec, payload[LIST_ITEMS_KEY], name)
            source = _Source(text) if text != source.text else source
            logger.info("patch_list_regenerated section=%s items=%s", name, count)
            result.updated.append(LIST_ITEMS_KEY)

        result.document = source.text
        result.changed = result.document != document
        return result

    def retarget_image(self, document: str, section: str, image_path: str) -> PatchResult:
        name = self.table.canonical_section(section)
        spec = self.table.section(name)
        result = PatchResult(document=document, section=name)
        locator = spec.image if spec else None
        if locator is None:
            logger.info("patch_no_image_locator section=%s", section)
            return result

        source = _Source(document)
        el = self._container(source, name, spec).select_one(locator.selector)
        if el is None:
            logger.warning("patch_locator_miss section=%s key=image selector=%s", name, locator.selector)
            result.skipped.append("image")
            return result
        text = _apply(source, el, locator, image_path)
        if text is None:
            result.skipped.append("image")
            return result
        result.updated.append("image")
        result.document = text
        result.changed = text != document
        return result

    def _regenerate(
        self,
        source: _Source,
        container: Tag,
        list_spec: ListSpec,
        items: Any,
        section: str,
    ) -> Tuple[str, int]:
        target = container.select_one(list_spec.container)
        if target is None:
            raise PatchError(f"List container {list_spec.container!r} not found in section '{section}'")
        if not isinstance(items, list):
            raise PatchError(f"'{LIST_ITEMS_KEY}' for section '{section}' must be a list")
        for idx, item in enumerate(items):
            if not isinstance(item, Mapping):
                raise PatchError(f"{section} item {idx} must be an object")
        span = source.content_span(target)
        if span is None:
            raise PatchError(f"List container {list_spec.container!r} has no closing tag")

        builder = _BUILDERS[list_spec.kind]
        indent = source.indent_of(target)
        step = INDENT
        first = target.find(True, recursive=False)
        if first is not None:
            nested = source.indent_of(first)
            # follow the document's own indentation width
            if nested.startswith(indent) and len(nested) > len(indent):
                step = nested[len(indent):]
        child_indent = indent + step
        parts = [
            "\n" + child_indent + str(builder(source.soup, record, idx, child_indent, step))
            for idx, record in enumerate(items)
        ]
        if items:
            parts.append("\n" + indent)
        return source.splice(span[0], span[1], "".join(parts)), len(items)


def patch(document: str, section: str, payload: Mapping[str, Any] | None) -> PatchResult:
    return DocumentPatcher().patch(document, section, payload)


__all__ = ["PatchResult", "DocumentPatcher", "patch", "PARSER"]
