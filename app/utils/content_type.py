"""
Content-Type detection utilities.
Guess MIME types for stored books from their file names.
"""

import mimetypes
from typing import Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# E-book formats missing from many system mime tables
mimetypes.add_type("application/epub+zip", ".epub")
mimetypes.add_type("application/x-mobipocket-ebook", ".mobi")
mimetypes.add_type("application/vnd.amazon.ebook", ".azw")
mimetypes.add_type("image/vnd.djvu", ".djvu")
mimetypes.add_type("application/x-fictionbook+xml", ".fb2")


def detect_content_type(filename: str, provided_type: Optional[str] = None) -> str:
    """
    Detect Content-Type from filename extension.

    A specific type supplied by the client wins; otherwise the type is guessed
    from the extension, with 'application/octet-stream' as last resort.

    Examples:
        >>> detect_content_type("book.pdf")
        'application/pdf'

        >>> detect_content_type("novel.epub")
        'application/epub+zip'

        >>> detect_content_type("notes.txt", "text/markdown")
        'text/markdown'
    """
    if provided_type and provided_type != DEFAULT_CONTENT_TYPE:
        return provided_type

    guessed_type, _ = mimetypes.guess_type(filename)

    # Priority: guessed > provided > fallback
    return guessed_type or provided_type or DEFAULT_CONTENT_TYPE
