from __future__ import annotations

import csv
import html
import io
import json
from typing import TYPE_CHECKING

from repolister.config import APP_NAME, ExportArtifact, ExportEntry, ExportFormat, ExportHeader

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    Builder = Callable[[ExportHeader, Sequence[ExportEntry]], str]

GENERATED_FMT = "%Y-%m-%d %H:%M:%S"
STAMP_FMT = "%Y-%m-%d_%H-%M-%S"
RULE = "-" * 60


def header_lines(header: ExportHeader) -> list[str]:
    """Metadata lines of an export, without comment markers.

    Args:
        header (ExportHeader): the export metadata

    Returns:
        list[str]: one ``Key: value`` line per field, framed by a title and a rule
    """
    return [
        f"{APP_NAME} Export",
        f"Repository: {header.repository}",
        f"Domain: {header.domain}",
        f"Branch: {header.branch}",
        f"Format: {header.format}",
        f"Generated: {header.generated_at.strftime(GENERATED_FMT)}",
        f"Profile: {header.profile}",
        f"Excluded pattern: {header.excluded}",
        RULE,
    ]


def comment_block(header: ExportHeader) -> str:
    return "".join(f"# {line}\n" for line in header_lines(header))


def build_text(header: ExportHeader, entries: Sequence[ExportEntry]) -> str:
    out = io.StringIO()
    out.write(comment_block(header))
    for e in entries:
        out.write(f"{e.url}\n")
    return out.getvalue()


def build_csv(header: ExportHeader, entries: Sequence[ExportEntry]) -> str:
    """Render the CSV export: comment header, column titles, one quoted row per file.

    Every field is quoted and embedded quotes are doubled.
    """
    out = io.StringIO()
    out.write(comment_block(header))
    out.write("filename,url\n")
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for e in entries:
        writer.writerow([e.filename, e.url])
    return out.getvalue()


def header_metadata(header: ExportHeader) -> dict[str, str]:
    return {
        "repository": header.repository,
        "domain": header.domain,
        "branch": header.branch,
        "format": str(header.format),
        "generated": header.generated_at.strftime(GENERATED_FMT),
        "profile": header.profile,
        "excluded_pattern": header.excluded,
    }


def build_json(header: ExportHeader, entries: Sequence[ExportEntry]) -> str:
    """Render a strictly valid JSON document with the header folded into ``export``."""
    doc = {
        "export": header_metadata(header),
        "files": [{"filename": e.filename, "url": e.url} for e in entries],
    }
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


def build_json_legacy(header: ExportHeader, entries: Sequence[ExportEntry]) -> str:
    """Render the legacy layout: comment header, then the bare JSON array.

    The file as a whole is not valid JSON; only the part after the header is.
    """
    out = io.StringIO()
    out.write(comment_block(header))
    items = [json.dumps({"filename": e.filename, "url": e.url}, ensure_ascii=False) for e in entries]
    out.write("[\n")
    out.write(",\n".join(f"  {item}" for item in items))
    out.write("\n]\n")
    return out.getvalue()


def build_html(header: ExportHeader, entries: Sequence[ExportEntry]) -> str:
    out = io.StringIO()
    out.write("<html><body>\n")
    out.write(f"<h2>File list for {html.escape(header.repository)}</h2>\n")
    out.write("<pre>\n")
    out.write(html.escape(comment_block(header)))
    out.write("</pre>\n")
    out.write("<ul>\n")
    for e in entries:
        href = html.escape(e.url, quote=True)
        out.write(f"<li><a href='{href}' target='_blank'>{html.escape(e.filename)}</a></li>\n")
    out.write("</ul></body></html>\n")
    return out.getvalue()


BUILDERS: dict[ExportFormat, Builder] = {
    ExportFormat.TEXT: build_text,
    ExportFormat.CSV: build_csv,
    ExportFormat.JSON: build_json,
    ExportFormat.HTML: build_html,
}


def make_entries(paths: Sequence[str], prefix: str) -> tuple[ExportEntry, ...]:
    """Pair every path with its raw URL, keeping the input order."""
    return tuple(ExportEntry(filename=p, url=f"{prefix}{p}") for p in paths)


def render_export(
    fmt: ExportFormat | str,
    header: ExportHeader,
    paths: Sequence[str],
    prefix: str,
    *,
    strict_json: bool = True,
) -> ExportArtifact:
    """Render filtered paths and their raw URLs into an export artifact.

    Args:
        fmt (ExportFormat | str): one of text, csv, json, html
        header (ExportHeader): the metadata block
        paths (Sequence[str]): the filtered tracked paths, in export order
        prefix (str): the raw URL prefix of the exported branch
        strict_json (bool): json only; False keeps the legacy comment-then-array layout

    Raises:
        UnknownFormatError: if ``fmt`` is not a supported format

    Returns:
        ExportArtifact: the rendered artifact, not yet written
    """
    export_format = ExportFormat.parse(fmt)
    entries = make_entries(paths, prefix)
    builder = BUILDERS[export_format]
    if export_format is ExportFormat.JSON and not strict_json:
        builder = build_json_legacy
    return ExportArtifact(
        format=export_format,
        header=header,
        entries=entries,
        content=builder(header, entries),
    )


def artifact_filename(repository_name: str, header: ExportHeader, fmt: ExportFormat) -> str:
    """File name of an artifact: ``{repository}_{timestamp}.{extension}``."""
    return f"{repository_name}_{header.generated_at.strftime(STAMP_FMT)}.{fmt.extension}"


def write_artifact(artifact: ExportArtifact, output_dir: Path, repository_name: str) -> ExportArtifact:
    """Write an artifact under ``output_dir``, creating the directory.

    Args:
        artifact (ExportArtifact): the rendered artifact
        output_dir (Path): the exports directory
        repository_name (str): name used as the file name stem

    Returns:
        ExportArtifact: a copy of ``artifact`` carrying the written path
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / artifact_filename(repository_name, artifact.header, artifact.format)
    path.write_text(artifact.content, encoding="utf-8")
    return artifact.model_copy(update={"path": path})
