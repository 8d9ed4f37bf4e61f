import re
from datetime import date

import pytest

from epaper.archive.archive_page import ArchivePageGenerator
from epaper.article_source.article_source import ArticleSource
from epaper.config import DAILY_EDITION
from epaper.errors import InvalidOptions, NoArticlesFound
from epaper.models import GenerationOptions, GenerationStage

from conftest import FakeContentStore, FakeSession, make_article, make_breaking, make_client, make_response

FILE_NAME = re.compile(r"^epaper-2025-05-01-\d+-[0-9a-f]{8}\.pdf$")


def options(**overrides) -> GenerationOptions:
    data = {"title": "বাংলা নিউজ টাইম", "date": "2025-05-01", "layout": "traditional", "maxArticles": 10}
    data.update(overrides)
    return GenerationOptions.from_dict(data)


def stored_files(storage):
    if not storage.epaper_dir.exists():
        return []
    return list(storage.epaper_dir.iterdir())


def test_traditional_edition_places_ten_articles(make_generator, storage) -> None:
    generator = make_generator([make_article(i) for i in range(1, 13)])
    result = generator.generate(options())

    assert result.success
    assert result.article_count == 10
    assert result.section_counts == {"breaking": 0, "main": 3, "sidebar": 4, "secondary": 3}
    files = stored_files(storage)
    assert len(files) == 1
    assert FILE_NAME.match(files[0].name)
    assert result.pdf_url == f"/generated-epapers/{files[0].name}"
    assert files[0].read_bytes().startswith(b"%PDF")


def test_breaking_news_takes_the_breaking_band(make_generator) -> None:
    breaking = [make_breaking(101), make_breaking(102)]
    generator = make_generator([make_article(i) for i in range(1, 13)], breaking)
    result = generator.generate(options(includeBreakingNews=True))

    assert result.success
    assert result.section_counts["breaking"] == 1
    assert result.article_count == 11
    assert generator.article_source.breaking_calls == 1


def test_breaking_news_not_fetched_unless_requested(make_generator) -> None:
    generator = make_generator([make_article(1)], [make_breaking(101)])
    generator.generate(options())
    assert generator.article_source.breaking_calls == 0


def test_unknown_layout_fails_without_fetching(make_generator, storage) -> None:
    generator = make_generator([make_article(1)])
    result = generator.generate(options(layout="nonexistent-id"))

    assert not result.success
    assert "nonexistent-id" in result.error
    assert result.article_count == 0
    assert result.failed_stage is GenerationStage.PENDING
    assert generator.article_source.candidate_calls == []
    assert stored_files(storage) == []


def test_no_candidates_fails_gracefully(make_generator, storage) -> None:
    generator = make_generator([], [make_breaking(101)])
    result = generator.generate(options(excludeCategories=["জাতীয়"], includeBreakingNews=True))

    assert not result.success
    assert result.article_count == 0
    assert "No articles found" in result.error
    assert result.failed_stage is GenerationStage.FETCHING
    assert stored_files(storage) == []


@pytest.mark.parametrize("layout, articles", [
    ("traditional", 12), ("modern", 3), ("compact", 0), ("nonexistent", 5),
])
def test_result_echoes_title_and_date(make_generator, layout, articles) -> None:
    generator = make_generator([make_article(i) for i in range(1, articles + 1)])
    result = generator.generate(options(layout=layout, title="Edition", date="2024-02-29"))

    assert result.title == "Edition"
    assert result.date == "2024-02-29"


def test_short_bodies_render(make_generator) -> None:
    articles = [make_article(i, content="ছোট") for i in range(1, 6)]
    result = make_generator(articles).generate(options(layout="modern", includeWeather=True))

    assert result.success
    assert result.article_count == 5


def test_persist_failure_reported(make_generator, storage) -> None:
    storage.output_dir.parent.mkdir(parents=True, exist_ok=True)
    storage.output_dir.write_text("not a directory")
    result = make_generator([make_article(1)]).generate(options())

    assert not result.success
    assert result.failed_stage is GenerationStage.PERSISTING
    assert result.article_count == 0


def test_regenerating_same_date_keeps_both_files(make_generator, storage) -> None:
    generator = make_generator([make_article(i) for i in range(1, 4)])
    first = generator.generate(options())
    second = generator.generate(options())

    assert first.pdf_url != second.pdf_url
    assert len(stored_files(storage)) == 2


def test_successful_edition_is_recorded(make_generator, content_store) -> None:
    generator = make_generator([make_article(1)], record_editions=True)
    content_store.tables["epapers"] = [{"id": 50, "publish_date": "2025-04-30", "is_latest": True}]
    result = generator.generate(options())

    assert result.success
    table, row = content_store.inserts[0]
    assert table == "epapers"
    assert row["pdf_url"] == result.pdf_url
    assert row["is_latest"] is True
    old = content_store.tables["epapers"][0]
    assert old["is_latest"] is False


def test_archive_failure_does_not_fail_edition(make_generator) -> None:
    store = FakeContentStore(fail_tables={"epapers"})
    from epaper.archive.edition_archive import EditionArchive

    generator = make_generator([make_article(1)], record_editions=True, archive=EditionArchive(store))
    result = generator.generate(options())
    assert result.success


def test_archive_page_rebuilt_after_success(make_generator, storage) -> None:
    generator = make_generator([make_article(1)], html_index=True,
                               archive_page=ArchivePageGenerator(storage))
    result = generator.generate(options())

    index = (storage.output_dir / "index.html").read_text(encoding="utf-8")
    assert result.pdf_url.rsplit("/", 1)[1] in index


def test_batch_generates_one_edition_per_day(make_generator, storage) -> None:
    generator = make_generator([make_article(i) for i in range(1, 4)])
    results = generator.generate_batch("2025-05-01", "2025-05-03", options())

    assert [r.date for r in results] == ["2025-05-01", "2025-05-02", "2025-05-03"]
    assert all(r.success for r in results)
    assert len(stored_files(storage)) == 3


@pytest.mark.parametrize("start, end", [
    ("2025-05-03", "2025-05-01"),
    ("2025-01-01", "2025-03-01"),
    ("yesterday", "2025-05-01"),
])
def test_batch_rejects_bad_ranges(make_generator, start, end) -> None:
    with pytest.raises(InvalidOptions):
        make_generator([make_article(1)]).generate_batch(start, end, options())


def test_daily_edition_uses_configured_defaults(make_generator) -> None:
    generator = make_generator([make_article(i) for i in range(1, 4)], [make_breaking(101)])
    result = generator.generate_daily_edition(today=date(2025, 5, 1))

    assert result.success
    assert result.date == "2025-05-01"
    assert result.section_counts["breaking"] == 1


def test_daily_edition_skipped_when_already_recorded(make_generator, content_store) -> None:
    content_store.tables["epapers"] = [{"id": 1, "publish_date": "2025-05-01", "is_latest": True}]
    generator = make_generator([make_article(1)], record_editions=True)

    assert generator.generate_daily_edition(today=date(2025, 5, 1)) is None
    assert generator.article_source.candidate_calls == []


def test_non_json_store_response_reports_no_articles(make_generator, storage) -> None:
    maintenance_page = make_response(content=b"<html>maintenance</html>", headers={"Content-Type": "text/html"})
    source = ArticleSource(make_client(FakeSession(maintenance_page)))
    result = make_generator(article_source=source).generate(options(includeBreakingNews=True))

    assert not result.success
    assert "No articles found" in result.error
    assert result.failed_stage is GenerationStage.FETCHING
    assert stored_files(storage) == []


def test_result_stage_is_terminal(make_generator) -> None:
    generator = make_generator([make_article(1)])

    assert generator.generate(options()).stage is GenerationStage.DONE
    failed = generator.generate(options(layout="nonexistent"))
    assert failed.stage is GenerationStage.FAILED
    assert failed.failed_stage is GenerationStage.PENDING


def test_preview_renders_without_storing(make_generator, storage, content_store) -> None:
    generator = make_generator([make_article(i) for i in range(1, 6)], record_editions=True)
    pdf_bytes = generator.preview(options(layout="compact", includeWeather=True))

    assert pdf_bytes.startswith(b"%PDF")
    assert stored_files(storage) == []
    assert content_store.inserts == []


def test_preview_without_articles_raises(make_generator) -> None:
    with pytest.raises(NoArticlesFound):
        make_generator([]).preview(options())


def test_daily_options_apply_overrides(make_generator) -> None:
    generated = make_generator([]).daily_options("2025-05-02", {"layout": "modern", "maxArticles": 4})

    assert generated.date == "2025-05-02"
    assert generated.layout == "modern"
    assert generated.max_articles == 4
    assert generated.title == DAILY_EDITION["title"]
