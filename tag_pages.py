#!/usr/bin/env python3
"""
tag_pages.py

Load the items of a Hugo/nanoc style content directory (or a single file) from
their YAML front matter and report on their tags: occurrence totals, frequency
ranks for a tag cloud, which articles carry each tag, and the listing pages
that would be generated for every tag.

Usage examples:
  # Default: tag totals (text)
  tag-pages

  # Tag cloud classes in 5 ranks, as json
  tag-pages --rank 5 --format json

  # Articles per tag (newest first), markdown
  tag-pages --by-tag --format markdown

  # Tag pages to generate, ignoring drafts
  tag-pages --pages --ignore-drafts --no-summary
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from tag_index import (
    InvalidTagError,
    Item,
    Site,
    TagIndex,
    TaggingError,
)


class FrontMatterError(TaggingError):
    """A content file could not be read or its front matter parsed."""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Report tag usage of site content and the tag pages to generate."
    )
    # Scope
    parser.add_argument(
        "--dir", "-d",
        default="./content",
        help="Path to the content directory (default: ./content)"
    )
    parser.add_argument(
        "--file", "-f",
        help="Load just a single file (overrides --dir and extension filtering)."
    )
    parser.add_argument(
        "--ext",
        default=".md",
        help="Comma-separated list of file extensions to include (default: .md)"
    )
    parser.add_argument(
        "--ignore-drafts",
        action="store_true",
        help="Skip files where front matter has draft: true."
    )

    # Sections
    parser.add_argument(
        "--summary",
        dest="summary", action="store_true",
        help="Include tag totals (on by default)."
    )
    parser.add_argument(
        "--no-summary",
        dest="summary", action="store_false",
        help="Disable tag totals."
    )
    parser.set_defaults(summary=True)
    parser.add_argument(
        "--rank",
        type=int,
        metavar="N",
        help="Show the rank of each tag when split into N frequency classes."
    )
    parser.add_argument(
        "--by-tag",
        action="store_true",
        help="Show which articles carry each tag, newest first."
    )
    parser.add_argument(
        "--pages",
        action="store_true",
        help="Show the tag pages that would be generated."
    )

    # Formatting & filters
    parser.add_argument(
        "--format",
        choices=["text", "markdown", "csv", "json"],
        default="text",
        help="Output format (default: text)."
    )
    parser.add_argument(
        "--sort",
        choices=["count", "alpha"],
        default="count",
        help="Sort order for totals/mapping keys (default: count)."
    )
    parser.add_argument(
        "--min-count",
        type=int,
        default=0,
        help="Only show tags with count >= N (default: 0)."
    )
    parser.add_argument(
        "--top",
        type=int,
        default=0,
        help="Limit to top N tags after filtering (default: 0 = no limit)."
    )

    return parser.parse_args(argv)


def split_front_matter(lines: List[str]) -> Tuple[int, int]:
    """Return (start_idx, end_idx) of YAML front matter if present, else (-1, -1)."""
    if not lines or lines[0].strip() != "---":
        return -1, -1
    for idx in range(1, len(lines)):
        if lines[idx].strip() == "---":
            return 0, idx
    return -1, -1


def read_front_matter(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except (OSError, UnicodeDecodeError) as e:
        raise FrontMatterError(f"Error reading {path}: {e}") from e

    s, e = split_front_matter(lines)
    if s == -1:
        return {}

    try:
        data = yaml.safe_load("".join(lines[s + 1:e])) or {}
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Error parsing YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise FrontMatterError(f"Front matter in {path} is not a mapping")
    return data


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    # fromisoformat only accepts a trailing Z from Python 3.11 on
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def identifier_for(path: str, content_dir: str) -> str:
    rel = os.path.relpath(path, content_dir) if content_dir else os.path.basename(path)
    stem = os.path.splitext(rel)[0].replace(os.sep, "/")
    return f"/{stem}/"


def item_from_front_matter(data: Dict[str, Any], path: str, content_dir: str) -> Item:
    attributes = dict(data)
    tags = attributes.pop("tags", None)
    if isinstance(tags, str):
        tags = [tags]
    if tags is not None:
        if not isinstance(tags, list):
            raise InvalidTagError(f"tags in {path} must be a list, got {type(tags).__name__}")
        for tag in tags:
            if tag is not None and not isinstance(tag, str):
                raise InvalidTagError(f"tag {tag!r} in {path} is not a string")

    raw_date = attributes.pop("created_at", None)
    if raw_date is None:
        raw_date = attributes.get("date")
    created_at = as_datetime(raw_date)
    if raw_date is not None and created_at is None:
        print(f"⚠️  Unparseable date {raw_date!r} in {path}", file=sys.stderr)
    kind = attributes.pop("kind", None)
    if kind is None:
        kind = "article" if created_at is not None else "page"

    title = attributes.pop("title", None)
    if title is None:
        title = os.path.splitext(os.path.basename(path))[0]

    return Item(
        identifier=identifier_for(path, content_dir),
        title=str(title),
        tags=tags,
        kind=str(kind),
        created_at=created_at,
        attributes=attributes,
    )


def iter_paths(content_dir: str, exts: List[str]) -> Iterable[str]:
    for root, _dirs, files in os.walk(content_dir):
        for filename in sorted(files):
            if any(filename.endswith(ext) for ext in exts):
                yield os.path.join(root, filename)


def load_site(content_dir: str,
              exts: List[str],
              ignore_drafts: bool,
              file_paths: Optional[List[str]] = None) -> Site:
    paths: Iterable[str]
    if file_paths:
        paths = file_paths
        content_dir = ""
    else:
        paths = iter_paths(content_dir, exts)

    site = Site()
    for path in paths:
        try:
            data = read_front_matter(path)
        except FrontMatterError as e:
            print(f"⚠️  {e}", file=sys.stderr)
            continue
        if not data:
            # No front matter; skip quietly
            continue
        if ignore_drafts and bool(data.get("draft", False)):
            continue
        try:
            site.items.append(item_from_front_matter(data, path, content_dir))
        except InvalidTagError as e:
            print(f"⚠️  Skipping {path}: {e}", file=sys.stderr)
    return site


def sort_and_filter(counter: Dict[str, int], mode: str, min_count: int, top: int) -> List[Tuple[str, int]]:
    rows = [(k, v) for k, v in counter.items() if v >= min_count]
    if mode == "alpha":
        rows.sort(key=lambda kv: kv[0])
    else:
        rows.sort(key=lambda kv: (-kv[1], kv[0]))
    if top > 0:
        rows = rows[:top]
    return rows


def render_table_text(rows: List[Tuple[str, int]], header: str, label: str) -> str:
    if not rows:
        return f"{header}\n{'=' * len(header)}\n(none)\n"
    width_item = max(4, max(len(name) for name, _ in rows))
    width_val = max(len(label), max(len(str(val)) for _, val in rows))
    out = [header, "=" * len(header)]
    out.append(f"{label:>{width_val}}  {'name':<{width_item}}")
    out.append(f"{'-' * width_val}  {'-' * width_item}")
    for name, val in rows:
        out.append(f"{val:>{width_val}}  {name:<{width_item}}")
    return "\n".join(out) + "\n"


def render_table_markdown(rows: List[Tuple[str, int]], header: str, label: str) -> str:
    if not rows:
        return f"### {header}\n\n*(none)*\n"
    out = [f"### {header}", "", f"| {label} | name |", "| ---: | :---- |"]
    for name, val in rows:
        out.append(f"| {val} | {name} |")
    out.append("")
    return "\n".join(out)


def csv_quote(text: str) -> str:
    escaped = text.replace('"', '""')
    return f"\"{escaped}\""


def render_table_csv(rows: List[Tuple[str, int]], header: str, label: str) -> str:
    out = [f"# {header.lower().replace(' ', '_')}", f"{label},name"]
    for name, val in rows:
        out.append(f"{val},{csv_quote(name)}")
    return "\n".join(out) + "\n"


def render_table_json(rows: List[Tuple[str, int]], header: str, label: str) -> str:
    return json.dumps(
        {"header": header, "rows": [{"name": name, label: val} for name, val in rows]},
        indent=2
    ) + "\n"


def render_table(rows: List[Tuple[str, int]], header: str, label: str, fmt: str) -> str:
    if fmt == "markdown":
        return render_table_markdown(rows, header, label)
    if fmt == "csv":
        return render_table_csv(rows, header, label)
    if fmt == "json":
        return render_table_json(rows, header, label)
    return render_table_text(rows, header, label)


def render_mapping(header: str, ordered_keys: List[str], mapping: Dict[str, List[str]], fmt: str) -> str:
    if fmt == "json":
        return json.dumps({header: {k: mapping.get(k, []) for k in ordered_keys}}, indent=2) + "\n"
    if fmt == "csv":
        out = ["name,identifier"]
        for key in ordered_keys:
            for ident in mapping.get(key, []):
                out.append(f"{csv_quote(key)},{csv_quote(ident)}")
        return "\n".join(out) + "\n"
    if fmt == "markdown":
        out = [f"### {header}", ""]
        for key in ordered_keys:
            out.append(f"#### {key}")
            out.extend(f"- `{ident}`" for ident in mapping.get(key, []))
            out.append("")
        return "\n".join(out)
    out = [header, "=" * len(header)]
    for key in ordered_keys:
        out.append(f"\n{key}")
        out.append("-" * len(key))
        out.extend(f"  {ident}" for ident in mapping.get(key, []))
    return "\n".join(out) + "\n"


def render_pages(pages: List[Item], fmt: str) -> str:
    if fmt == "json":
        payload = [
            {"identifier": p.identifier, "title": p.title,
             "template": p.content.template, "params": dict(p.content.params)}
            for p in pages
        ]
        return json.dumps({"pages": payload}, indent=2) + "\n"
    if fmt == "csv":
        out = ["identifier,title,template"]
        out.extend(f"{csv_quote(p.identifier)},{csv_quote(p.title)},{p.content.template}" for p in pages)
        return "\n".join(out) + "\n"
    if fmt == "markdown":
        out = ["### Tag pages", ""]
        out.extend(f"- `{p.identifier}` {p.title} ({p.content.template})" for p in pages)
        out.append("")
        return "\n".join(out)
    out = ["Tag pages", "========="]
    out.extend(f"{p.identifier}  {p.title}" for p in pages)
    if not pages:
        out.append("(none)")
    return "\n".join(out) + "\n"


def run(args: argparse.Namespace) -> None:
    raw_exts = [x.strip() for x in args.ext.split(",") if x.strip()]
    exts = [e if e.startswith(".") else f".{e}" for e in raw_exts]
    file_paths = [args.file] if args.file else None

    site = load_site(args.dir, exts, args.ignore_drafts, file_paths)
    index = TagIndex(site)
    counts = index.count_tags()
    rows = sort_and_filter(counts, args.sort, args.min_count, args.top)
    ordered = [name for name, _ in rows]

    if args.summary:
        sys.stdout.write(render_table(rows, "Tags", "count", args.format))

    if args.rank is not None:
        ranks = index.rank_tags(args.rank)
        rank_rows = [(name, ranks[name]) for name in ordered]
        sys.stdout.write(render_table(rank_rows, "Tag ranks", "rank", args.format))

    if args.by_tag:
        mapping = {tag: [i.identifier for i in index.items_with_tag(tag)] for tag in ordered}
        sys.stdout.write(render_mapping("Articles by Tag", ordered, mapping, args.format))

    if args.pages:
        sys.stdout.write(render_pages(index.create_tag_pages(), args.format))


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        run(args)
    except TaggingError as e:
        print(f"⚠️  {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
