import pytest

from epaper import _options_from_args, build_parser


def test_generate_arguments_become_options() -> None:
    args = build_parser().parse_args([
        "--output-dir", "/tmp/out", "generate", "--title", "বাংলা নিউজ টাইম", "--date", "2025-05-01",
        "--layout", "modern", "--max-articles", "6", "--include-category", "খেলাধুলা",
        "--exclude-category", "বিনোদন", "--weather",
    ])
    options = _options_from_args(args)

    assert args.command == "generate"
    assert args.output_dir == "/tmp/out"
    assert options.layout == "modern"
    assert options.max_articles == 6
    assert options.include_categories == ["খেলাধুলা"]
    assert options.exclude_categories == ["বিনোদন"]
    assert options.include_breaking_news is True
    assert options.include_weather is True


def test_no_breaking_news_flag() -> None:
    args = build_parser().parse_args(["preview", "--title", "T", "--no-breaking-news"])
    assert _options_from_args(args).include_breaking_news is False


def test_command_is_required() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
