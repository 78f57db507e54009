"""Render pipeline: template language, body transformation and ``render``."""

from .renderer import RenderedInstance, render, split_attachments
from .templating import (
    CompiledTemplate,
    compile_template,
    extract_expressions,
    parse_path,
    render_text,
)
from .transform import html_to_text, inline_css, load_css, markdown_to_html

__all__ = [
    "CompiledTemplate",
    "RenderedInstance",
    "compile_template",
    "extract_expressions",
    "html_to_text",
    "inline_css",
    "load_css",
    "markdown_to_html",
    "parse_path",
    "render",
    "render_text",
    "split_attachments",
]
