"""Render finished assignment documents to export-friendly formats."""

from __future__ import annotations

import datetime as _dt
import html
import logging
import textwrap
from pathlib import Path

import markdown
from markdown.extensions import Extension

from ..logging import log_call


logger = logging.getLogger(__name__)


DEFAULT_EXPORT_FILENAME = "Assignment_Solution.md"

MARKDOWN_EXTENSIONS = ("tables", "fenced_code", "sane_lists")


class _EscapeRawHtml(Extension):
    """Render HTML found in generated answers as text instead of markup."""

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")


class ExportService:
    """Write generated documents as Markdown or standalone HTML."""

    @log_call(logger=logger, include_args=False)
    def to_markdown(
        self,
        document: str,
        *,
        title: str | None = None,
        metadata: dict | None = None,
    ) -> str:
        lines: list[str] = []
        if title:
            timestamp = _dt.datetime.now(_dt.UTC).strftime("%Y-%m-%d %H:%M:%SZ")
            lines.extend([f"# {title}", "", f"_Generated: {timestamp}_", ""])
        if metadata:
            lines.extend(f"* **{key}**: {value}" for key, value in metadata.items())
            lines.append("")
        lines.append(document.strip())
        return "\n".join(lines).strip() + "\n"

    @log_call(logger=logger, include_args=False)
    def to_html(self, document: str, *, title: str = "Assignment Solutions") -> str:
        head = textwrap.dedent(
            f"""
            <!DOCTYPE html>
            <html lang=\"en\">
              <head>
                <meta charset=\"utf-8\" />
                <title>{html.escape(title)}</title>
                <style>
                  body {{ font-family: Georgia, serif; margin: 2em auto; max-width: 50em; }}
                  h3 {{ border-bottom: 1px solid #999; padding-bottom: 0.3em; }}
                  hr {{ margin: 2em 0; }}
                </style>
              </head>
              <body>
            """
        ).strip("\n")
        parts = [head, f"<h1>{html.escape(title)}</h1>"]
        parts.append(self.render_markdown(document))
        parts.append("  </body>\n</html>")
        return "\n".join(parts)

    @log_call(logger=logger, include_result=True)
    def write_text(self, destination: str | Path, content: str) -> Path:
        path = Path(destination)
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info("Wrote export", extra={"destination": str(path), "bytes": path.stat().st_size})
        return path

    @staticmethod
    def render_markdown(document: str) -> str:
        """Convert a Markdown document body to an HTML fragment."""

        return markdown.markdown(
            document,
            extensions=[*MARKDOWN_EXTENSIONS, _EscapeRawHtml()],
            output_format="xhtml",
        )


__all__ = ["DEFAULT_EXPORT_FILENAME", "MARKDOWN_EXTENSIONS", "ExportService"]
