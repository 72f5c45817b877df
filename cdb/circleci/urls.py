"""URL parsing and display helpers for CircleCI builds."""

import re

CIRCLECI_URL_RE = re.compile(r"circleci\.com/gh/([^/]+)/([^/]+)/(\d+)")


def parse_circleci_url(url: str) -> tuple[str, str, int]:
    """
    Extract (org, project, build number) from a CircleCI build URL.

    Both circleci.com and app.circleci.com URLs are accepted.

    Raises:
        ValueError: If the URL is not a CircleCI build URL

    Example:
        >>> parse_circleci_url("https://circleci.com/gh/myorg/myrepo/12345")
        ('myorg', 'myrepo', 12345)
    """
    match = CIRCLECI_URL_RE.search(url)
    if match is None:
        raise ValueError(
            "cannot parse CircleCI URL\n"
            "  expected: https://circleci.com/gh/org/repo/12345\n"
            f"  got: {url}"
        )
    org, project, build_num = match.groups()
    return org, project, int(build_num)


def build_url(org: str, project: str, build_num: int) -> str:
    """Canonical web URL of a build."""
    return f"https://circleci.com/gh/{org}/{project}/{build_num}"


def format_duration(millis: int) -> str:
    """
    Format milliseconds as "2m 30s" (one minute or more) or "45s".

    Sub-second remainders are truncated.
    """
    seconds = max(millis, 0) // 1000
    minutes, remaining = divmod(seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{seconds}s"
