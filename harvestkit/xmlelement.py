"""An XML or HTML element matched by an XPath query."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from lxml import etree

_XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"


def _relative(query: str) -> str:
    """Make a leading ``/`` refer to the element itself rather than the document."""
    stripped = query.lstrip()
    return "." + stripped if stripped.startswith("/") else stripped


def _html_attr_name(key: str) -> str:
    if key.startswith("{"):
        namespace, _, local = key[1:].partition("}")
        return f"xml:{local}" if namespace == _XML_NAMESPACE else local
    return key


def _xml_attr_name(key: str) -> str:
    return etree.QName(key).localname


def _inner_text(item: Any) -> str:
    if isinstance(item, str):
        return str(item)
    return str(item.xpath("string()"))


@dataclass
class XMLElement:
    """An element of an XML or HTML document, queried with XPath."""

    name: str = ""
    text: str = ""
    request: Any = None
    response: Any = None
    dom: Any = None
    is_html: bool = False

    def _attr_items(self, node: Any) -> Iterator[tuple[str, str]]:
        attrib = getattr(node, "attrib", None)
        if attrib is None:
            return
        name_of = _html_attr_name if self.is_html else _xml_attr_name
        for key, value in attrib.items():
            yield name_of(key), value

    def _find(self, xpath_query: str) -> list[Any]:
        result = self.dom.xpath(_relative(xpath_query))
        return result if isinstance(result, list) else []

    def attr(self, key: str) -> str:
        """Return the value of attribute ``key``, or ``""`` if it is absent."""
        return next((value for name, value in self._attr_items(self.dom) if name == key), "")

    def child_text(self, xpath_query: str) -> str:
        """Return the stripped text of the first node matching ``xpath_query``."""
        found = self._find(xpath_query)
        return _inner_text(found[0]).strip() if found else ""

    def child_attr(self, xpath_query: str, attr_name: str) -> str:
        """Return the stripped ``attr_name`` value of the first matching node."""
        found = self._find(xpath_query)
        if not found:
            return ""
        return next(
            (value.strip() for name, value in self._attr_items(found[0]) if name == attr_name),
            "",
        )

    def child_attrs(self, xpath_query: str, attr_name: str) -> list[str]:
        """Return the stripped ``attr_name`` values of all matching nodes."""
        return [
            value.strip()
            for child in self._find(xpath_query)
            for name, value in self._attr_items(child)
            if name == attr_name
        ]

    def child_texts(self, xpath_query: str) -> list[str]:
        """Return the stripped text of every node matching ``xpath_query``."""
        return [_inner_text(child).strip() for child in self._find(xpath_query)]


def from_html_node(response: Any, node: Any) -> XMLElement:
    """Build an XMLElement from an element of a parsed HTML document."""
    return XMLElement(
        name=str(node.tag),
        text=_inner_text(node),
        request=response.request if response is not None else None,
        response=response,
        dom=node,
        is_html=True,
    )


def from_xml_node(response: Any, node: Any) -> XMLElement:
    """Build an XMLElement from an element of a parsed XML document."""
    return XMLElement(
        name=etree.QName(node).localname,
        text=_inner_text(node),
        request=response.request if response is not None else None,
        response=response,
        dom=node,
        is_html=False,
    )