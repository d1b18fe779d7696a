from modfeed.portal.changelog import (
    TRIMMED_MARKER,
    VERSION_SEPARATOR,
    ChangelogCategory,
    find_entry,
    format_release_notes,
    parse_changelog,
)

CHANGELOG = f"""{VERSION_SEPARATOR}
Version: 1.0.1
Date: 06. 07. 2024
  Bugfixes:
    - Add partial Space Exploration support.
    - Write better tests.
  Features:
    - Add new entities.
{VERSION_SEPARATOR}
Version: 1.0.0
  Features:
    - Initial release.
"""


def test_parse_changelog_splits_versions_and_categories():
    entries = parse_changelog(CHANGELOG)

    assert [entry.version for entry in entries] == ["1.0.1", "1.0.0"]
    assert entries[0].date == "06. 07. 2024"
    assert entries[0].categories == [
        ChangelogCategory("Bugfixes:", ["- Add partial Space Exploration support.", "- Write better tests."]),
        ChangelogCategory("Features:", ["- Add new entities."]),
    ]
    assert entries[1].date is None
    assert entries[1].categories == [ChangelogCategory("Features:", ["- Initial release."])]


def test_parse_changelog_without_separators():
    text = "Version: 2.0.0\n  Changes:\n    - A\nVersion: 1.0.0\n  Changes:\n    - B\n"

    entries = parse_changelog(text)

    assert [entry.version for entry in entries] == ["2.0.0", "1.0.0"]
    assert entries[1].categories[0].entries == ["- B"]


def test_parse_changelog_empty_input():
    assert parse_changelog(None) == []
    assert parse_changelog("") == []


def test_find_entry_by_exact_version():
    entries = parse_changelog(CHANGELOG)

    assert find_entry(entries, "1.0.0").version == "1.0.0"
    assert find_entry(entries, "1.0") is None


def test_format_release_notes_renders_requested_version():
    notes = format_release_notes(CHANGELOG, "1.0.1")

    assert notes == (
        "**Bugfixes:**\n"
        "- Add partial Space Exploration support.\n"
        "- Write better tests.\n"
        "**Features:**\n"
        "- Add new entities."
    )


def test_format_release_notes_trims_long_sections():
    items = "\n".join(f"    - change {i}" for i in range(30))
    text = f"Version: 3.0.0\n  Changes:\n{items}\n"

    notes = format_release_notes(text, "3.0.0", max_lines=15)
    lines = notes.splitlines()

    assert len(lines) == 16
    assert lines[0] == "**Changes:**"
    assert lines[-1] == TRIMMED_MARKER


def test_format_release_notes_escapes_portal_text():
    text = "Version: 1.0.0\n  Fixes:\n    - fixed some_thing for @everyone\n"

    notes = format_release_notes(text, "1.0.0")

    assert "some\\_thing" in notes
    assert "@everyone" not in notes


def test_format_release_notes_missing_version_returns_none():
    assert format_release_notes(CHANGELOG, "9.9.9") is None
    assert format_release_notes(None, "1.0.0") is None
    assert format_release_notes("   ", "1.0.0") is None


def test_format_release_notes_free_form_text_is_used_as_is():
    assert format_release_notes("fixed X", "1.2.0") == "fixed X"
