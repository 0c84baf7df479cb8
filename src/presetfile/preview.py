"""HTML preview of the files carried by a stored-file setting."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup

from .codec import FileRecord
from .filetypes import ExtensionClassifier, image_extensions

ELLIPSIS = "..."


@dataclass
class PreviewOptions:
    """Preview rendering settings.

    Attributes:
        text_bytes: Bytes of decoded content shown for non-image files.
        image_width: Thumbnail width in pixels.
        escape: Escape file names and text content. When False the
            markup is concatenated verbatim, names and content included.
    """

    text_bytes: int = 100
    image_width: int = 200
    escape: bool = True


def _excerpt(record: FileRecord, limit: int) -> str:
    return record.decoded(strict=False)[:limit].decode("utf-8", errors="replace")


def _image_style(options: PreviewOptions) -> str:
    return f"display:block; width:{options.image_width}px"


def _text_style(options: PreviewOptions) -> str:
    return (
        f"display:block; width: {options.image_width}px; "
        "overflow: hidden; text-overflow: ellipsis;"
    )


def _image_src(record: FileRecord) -> str:
    # The extension stands in for the MIME type; browsers sniff the rest.
    return f"data:{record.extension};base64, {record.content}"


def _render_raw(
    records: list[FileRecord],
    classifier: ExtensionClassifier,
    options: PreviewOptions,
) -> str:
    html = ""
    for record in records:
        if classifier.is_image(record.extension):
            html += f'<img style="{_image_style(options)}" src="{_image_src(record)}" />'
        else:
            html += (
                f'<span style="{_text_style(options)}"><b>{record.name}</b> '
                f"{_excerpt(record, options.text_bytes)}{ELLIPSIS}</span>"
            )
    return html


def _render_escaped(
    records: list[FileRecord],
    classifier: ExtensionClassifier,
    options: PreviewOptions,
) -> str:
    soup = BeautifulSoup("", "html.parser")
    for record in records:
        if classifier.is_image(record.extension):
            img = soup.new_tag(
                "img",
                attrs={"style": _image_style(options), "src": _image_src(record)},
            )
            soup.append(img)
        else:
            span = soup.new_tag("span", attrs={"style": _text_style(options)})
            bold = soup.new_tag("b")
            bold.string = record.name
            span.append(bold)
            span.append(f" {_excerpt(record, options.text_bytes)}{ELLIPSIS}")
            soup.append(span)
    return str(soup)


def render_preview(
    records: list[FileRecord],
    classifier: ExtensionClassifier | None = None,
    options: PreviewOptions | None = None,
) -> str:
    """Render records as an HTML fragment, in record order.

    Image files become inline ``<img>`` thumbnails with the base64 content
    embedded; other files show their name and the start of their content.

    Args:
        records: Files to show.
        classifier: Decides which extensions are images.
            Defaults to the process-wide image classifier.
        options: Rendering settings.

    Returns:
        HTML fragment (empty string when there are no records).
    """
    if classifier is None:
        classifier = image_extensions
    if options is None:
        options = PreviewOptions()
    classifier.ensure_loaded()
    if options.escape:
        return _render_escaped(records, classifier, options)
    return _render_raw(records, classifier, options)
