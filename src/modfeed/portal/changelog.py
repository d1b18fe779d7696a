"""
Parser for the mod portal's changelog text format.

A changelog is a sequence of version sections separated by a line of 99
dashes::

    Version: 1.0.1
    Date: 06. 07. 2024
      Bugfixes:
        - Fix the thing.
      Features:
        - Add the other thing.

Category lines are indented by two spaces, entries by four.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from modfeed.util.format_utils import escape_formatting

VERSION_SEPARATOR = "-" * 99
TRIMMED_MARKER = "<Trimmed>"

_VERSION_PREFIX = "Version: "
_DATE_PREFIX = "Date: "
_CATEGORY_INDENT = "  "
_ENTRY_INDENT = "    "


@dataclass
class ChangelogCategory:
    name: str = ""
    entries: List[str] = field(default_factory=list)


@dataclass
class ChangelogEntry:
    version: str = ""
    date: Optional[str] = None
    categories: List[ChangelogCategory] = field(default_factory=list)


def parse_changelog(text: str | None) -> List[ChangelogEntry]:
    """Split a raw changelog into per-version entries, newest first as written."""
    if not text:
        return []

    parsed: List[ChangelogEntry] = []
    for section in text.split(VERSION_SEPARATOR):
        entry = ChangelogEntry()
        category = ChangelogCategory()

        for line in section.splitlines():
            if line.startswith(_VERSION_PREFIX):
                # Sections without a separator line between them
                if entry.version:
                    entry.categories.append(category)
                    parsed.append(entry)
                entry = ChangelogEntry(version=line[len(_VERSION_PREFIX):].strip())
                category = ChangelogCategory()
            elif line.startswith(_DATE_PREFIX):
                entry.date = line[len(_DATE_PREFIX):].strip()
            elif line.startswith(_ENTRY_INDENT):
                category.entries.append(line[len(_ENTRY_INDENT):])
            elif line.startswith(_CATEGORY_INDENT):
                if category.name or category.entries:
                    entry.categories.append(category)
                category = ChangelogCategory(name=line[len(_CATEGORY_INDENT):].strip())

        if not entry.version:
            continue
        if category.name or category.entries:
            entry.categories.append(category)
        parsed.append(entry)

    return parsed


def find_entry(entries: List[ChangelogEntry], version: str) -> ChangelogEntry | None:
    for entry in entries:
        if entry.version == version:
            return entry
    return None


def format_release_notes(raw_changelog: str | None, version: str, max_lines: int = 15) -> str | None:
    """
    Render the changelog section of ``version`` as Discord markdown.

    Category names become bold lines, entries are copied as-is; all portal
    text is escaped. Output longer than ``max_lines`` is cut and followed by a
    ``<Trimmed>`` line.

    Text without any ``Version:`` header is treated as free-form notes for
    whatever version is being announced.

    Returns:
        The rendered notes, or None when the changelog has no section for
        ``version``.
    """
    if not raw_changelog or not raw_changelog.strip():
        return None

    entries = parse_changelog(raw_changelog)
    lines: List[str] = []
    if not entries:
        lines = [escape_formatting(line.rstrip()) for line in raw_changelog.strip().splitlines()]
    else:
        entry = find_entry(entries, version)
        if entry is None:
            return None
        for category in entry.categories:
            if category.name:
                lines.append(f"**{escape_formatting(category.name)}**")
            lines.extend(escape_formatting(item) for item in category.entries)

    if len(lines) > max_lines:
        lines = lines[:max_lines]
        lines.append(TRIMMED_MARKER)
    return "\n".join(lines)
