from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

import tag_pages
from tag_index import InvalidTagError, Item, create_tag_pages
from tag_pages import FrontMatterError


def write_post(root: Path, rel: str, front_matter: str, body: str = "Body\n") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{front_matter}---\n{body}", encoding="utf-8")
    return path


@pytest.fixture
def content(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    write_post(root, "posts/first.md", "title: First\ndate: 2023-01-02\ntags: [python, yaml]\n")
    write_post(root, "posts/second.md", "title: Second\ndate: 2024-03-04\ntags:\n  - python\n")
    write_post(root, "about.md", "title: About\ntags: python\n")
    write_post(root, "drafts/wip.md", "title: WIP\ndraft: true\ndate: 2024-06-01\ntags: [draft-only]\n")
    (root / "plain.md").write_text("no front matter here\n", encoding="utf-8")
    return root


def test_read_front_matter_rejects_invalid_yaml(tmp_path: Path) -> None:
    path = write_post(tmp_path, "bad.md", "tags: [unclosed\n")

    with pytest.raises(FrontMatterError, match="Error parsing YAML"):
        tag_pages.read_front_matter(str(path))


def test_read_front_matter_without_front_matter(tmp_path: Path) -> None:
    path = tmp_path / "plain.md"
    path.write_text("just text\n", encoding="utf-8")

    assert tag_pages.read_front_matter(str(path)) == {}


def test_item_from_front_matter_maps_fields() -> None:
    data = {"title": "Hello", "date": datetime(2024, 1, 2, 3, 4), "tags": ["Go", None], "author": "me"}

    item = tag_pages.item_from_front_matter(data, "/site/content/posts/hello.md", "/site/content")

    assert item.identifier == "/posts/hello/"
    assert item.title == "Hello"
    assert item.tags == ["Go", None]
    assert item.kind == "article"
    assert item.created_at == datetime(2024, 1, 2, 3, 4)
    assert item.attributes["author"] == "me"


def test_item_from_front_matter_defaults_to_page() -> None:
    item = tag_pages.item_from_front_matter({"draft": False}, "/c/about.md", "/c")

    assert item.kind == "page"
    assert item.title == "about"
    assert item.tags is None
    assert item.created_at is None


def test_item_from_front_matter_rejects_non_string_tags() -> None:
    with pytest.raises(InvalidTagError, match="is not a string"):
        tag_pages.item_from_front_matter({"tags": [2024]}, "/c/x.md", "/c")


def test_load_site_skips_bad_files_with_warning(content: Path, capsys: pytest.CaptureFixture[str]) -> None:
    write_post(content, "broken.md", "tags: [unclosed\n")
    write_post(content, "numbers.md", "tags: [1, 2]\n")

    site = tag_pages.load_site(str(content), [".md"], ignore_drafts=True)

    identifiers = sorted(i.identifier for i in site.items)
    assert identifiers == ["/about/", "/posts/first/", "/posts/second/"]
    err = capsys.readouterr().err
    assert "Error parsing YAML" in err
    assert "Skipping" in err


def test_main_summary_text(content: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert tag_pages.main(["--dir", str(content)]) == 0

    out = capsys.readouterr().out
    assert out.startswith("Tags\n====\n")
    assert "    3  python" in out
    assert "draft-only" in out


def test_main_ranks_json(content: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = tag_pages.main(["--dir", str(content), "--ignore-drafts", "--no-summary", "--rank", "2", "--format", "json"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["header"] == "Tag ranks"
    assert payload["rows"] == [{"name": "python", "rank": 0}, {"name": "yaml", "rank": 1}]


def test_main_by_tag_lists_articles_newest_first(content: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = tag_pages.main(["--dir", str(content), "--ignore-drafts", "--no-summary", "--by-tag", "--format", "json"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    # about.md has no date, so it is a page and not listed
    assert payload["Articles by Tag"] == {
        "python": ["/posts/second/", "/posts/first/"],
        "yaml": ["/posts/first/"],
    }


def test_main_pages_csv(content: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = tag_pages.main(["--dir", str(content), "--ignore-drafts", "--no-summary", "--pages", "--format", "csv"])

    assert code == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "identifier,title,template"
    assert sorted(lines[1:]) == ['"/python/","python",section', '"/yaml/","yaml",section']


def test_main_reports_rank_errors(content: Path, capsys: pytest.CaptureFixture[str]) -> None:
    single = write_post(content.parent, "one.md", "tags: [solo]\n")

    assert tag_pages.main(["--file", str(single), "--no-summary", "--rank", "3"]) == 1
    assert "cannot split tags" in capsys.readouterr().err

    assert tag_pages.main(["--dir", str(content), "--no-summary", "--rank", "0"]) == 1
    assert "positive integer" in capsys.readouterr().err


def test_main_skips_undecodable_files(content: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (content / "bad.md").write_bytes(b"---\ntitle: \xff\xfe\n---\n")

    assert tag_pages.main(["--dir", str(content)]) == 0

    captured = capsys.readouterr()
    assert "Error reading" in captured.err
    assert "bad.md" in captured.err
    assert "python" in captured.out


def test_sorted_articles_compare_dates_across_offsets(tmp_path: Path) -> None:
    # 23:00 at -05:00 is 04:00 UTC, later than 01:00 UTC the same day
    write_post(tmp_path, "a.md", "date: 2024-01-01T23:00:00-05:00\n")
    write_post(tmp_path, "b.md", "date: 2024-01-02T01:00:00+00:00\n")

    site = tag_pages.load_site(str(tmp_path), [".md"], ignore_drafts=False)

    assert [i.identifier for i in site.sorted_articles()] == ["/a/", "/b/"]
    assert site.items[0].created_at == datetime(2024, 1, 2, 4, 0)


def test_as_datetime_normalizes_to_utc() -> None:
    assert tag_pages.as_datetime("2024-01-02T01:00:00Z") == datetime(2024, 1, 2, 1, 0)
    assert tag_pages.as_datetime("2024-01-01T23:00:00-05:00") == datetime(2024, 1, 2, 4, 0)
    assert tag_pages.as_datetime("someday") is None


def test_item_from_front_matter_unparseable_date_is_a_page(capsys: pytest.CaptureFixture[str]) -> None:
    item = tag_pages.item_from_front_matter({"date": "someday"}, "/c/x.md", "/c")

    assert item.kind == "page"
    assert item.created_at is None
    assert "Unparseable date 'someday'" in capsys.readouterr().err


def test_item_from_front_matter_quoted_utc_date_is_an_article() -> None:
    item = tag_pages.item_from_front_matter({"date": "2024-01-02T01:00:00Z"}, "/c/x.md", "/c")

    assert item.kind == "article"
    assert item.created_at == datetime(2024, 1, 2, 1, 0)


def test_csv_output_escapes_quotes() -> None:
    items = [Item("/p/", tags=['say "hi"'])]
    pages = create_tag_pages(items)

    pages_csv = tag_pages.render_pages(pages, "csv").splitlines()
    mapping_csv = tag_pages.render_mapping("Articles by Tag", ['say "hi"'], {'say "hi"': ["/p/"]}, "csv").splitlines()

    assert pages_csv[1] == '"/say ""hi""/","say ""hi""",section'
    assert mapping_csv[1] == '"say ""hi""","/p/"'
