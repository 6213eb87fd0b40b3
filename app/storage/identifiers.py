"""
Helpers for reading storage SDK upload results.

SDKs disagree on where the new file's identifier lives: MEGA nodes expose
"h", some wrappers use "nodeID"/"nodeId", others "id", and mega.py returns
the raw API answer with the node nested under "f". These helpers read any
of those shapes, from objects or mappings, without serializing the result
(SDK nodes can hold circular references).
"""

import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

FILE_ID_FIELDS = ("h", "nodeID", "nodeId", "id")
DEBUG_FIELDS = ("name", "h", "link", "nodeID")


def _field(obj: Any, name: str) -> Any:
    """Read a field from a mapping or an attribute from an object."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _nested_node(raw: Any) -> Any:
    """Return the first node of a MEGA API "f" list, if present."""
    nodes = _field(raw, "f")
    if isinstance(nodes, (list, tuple)) and nodes:
        return nodes[0]
    return None


def extract_file_id(raw: Any) -> Optional[str]:
    """
    Extract the remote file identifier from an upload result.

    Args:
        raw: SDK upload result (object or mapping)

    Returns:
        Identifier string, or None if no known field holds one
    """
    for candidate in (raw, _nested_node(raw)):
        for name in FILE_ID_FIELDS:
            value = _field(candidate, name)
            if isinstance(value, str) and value:
                return value
    return None


def resolve_share_link(
    raw: Any,
    provider_link: Optional[Callable[[Any], Optional[str]]] = None,
    link_base: Optional[str] = None,
) -> Optional[str]:
    """
    Work out a share link for an uploaded file.

    Sources are tried in order, a failing source is logged and skipped:
    the provider's own link call, a callable ``link`` on the result, a string
    ``link`` on the result, and finally ``link_base`` + file identifier.

    Returns:
        Link URL, or None if none of the sources produced one
    """
    if provider_link is not None:
        try:
            url = provider_link(raw)
            if url:
                logger.info(f"Generated share link via provider: {url}")
                return url
        except Exception as e:
            logger.error(f"Provider share link error: {e}")

    link = _field(raw, "link")
    if callable(link):
        try:
            url = link()
            if isinstance(url, str) and url:
                logger.info(f"Generated share link via link(): {url}")
                return url
        except Exception as e:
            logger.error(f"link() error: {e}")
    elif isinstance(link, str) and link:
        return link

    handle = extract_file_id(raw)
    if handle and link_base:
        url = f"{link_base}{handle}"
        logger.info(f"Using fallback handle link: {url}")
        return url

    return None


def describe_upload(raw: Any) -> Dict[str, Any]:
    """Pick the fields worth logging from an upload result."""
    node = _nested_node(raw)
    described = {}
    for name in DEBUG_FIELDS:
        value = _field(raw, name)
        if value is None and node is not None:
            value = _field(node, name)
        if callable(value):
            value = "<function>"
        described[name] = value
    return described
