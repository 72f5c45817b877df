"""Tests for CircleCI URL helpers."""

import pytest

from cdb.circleci import build_url, format_duration, parse_circleci_url


class TestParseCircleciUrl:
    """Tests for parse_circleci_url."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://circleci.com/gh/myorg/myrepo/12345", ("myorg", "myrepo", 12345)),
            ("https://app.circleci.com/gh/my-org/my.repo/7", ("my-org", "my.repo", 7)),
            ("circleci.com/gh/org/repo/99?utm_source=slack", ("org", "repo", 99)),
        ],
    )
    def test_valid(self, url: str, expected: tuple[str, str, int]) -> None:
        """Test parsing of accepted URL shapes."""
        assert parse_circleci_url(url) == expected

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/myorg/myrepo/pull/1",
            "https://circleci.com/gh/myorg/myrepo",
            "https://circleci.com/gh/myorg/myrepo/abc",
            "",
        ],
    )
    def test_invalid(self, url: str) -> None:
        """Test that anything else is rejected with the expected shape."""
        with pytest.raises(ValueError, match="cannot parse CircleCI URL") as exc_info:
            parse_circleci_url(url)

        assert "expected: https://circleci.com/gh/org/repo/12345" in str(exc_info.value)


class TestBuildUrl:
    """Tests for build_url."""

    def test_round_trip(self) -> None:
        """Test that a built URL parses back to its parts."""
        url = build_url("myorg", "myrepo", 42)

        assert url == "https://circleci.com/gh/myorg/myrepo/42"
        assert parse_circleci_url(url) == ("myorg", "myrepo", 42)


class TestFormatDuration:
    """Tests for format_duration."""

    @pytest.mark.parametrize(
        ("millis", "expected"),
        [
            (0, "0s"),
            (999, "0s"),
            (45_000, "45s"),
            (59_999, "59s"),
            (60_000, "1m 0s"),
            (150_000, "2m 30s"),
            (3_725_000, "62m 5s"),
            (-5, "0s"),
        ],
    )
    def test_format(self, millis: int, expected: str) -> None:
        """Test minute/second formatting."""
        assert format_duration(millis) == expected
