from pathlib import Path

from src.sitebuild.utils import expand_globs, match_glob, static_prefix


def test_double_star_matches_zero_or_more_directories():
    assert match_glob("site/pages/index.njk", "site/pages/**/*.njk")
    assert match_glob("site/pages/a/b/c.njk", "site/pages/**/*.njk")
    assert not match_glob("site/pages/index.html", "site/pages/**/*.njk")
    assert not match_glob("other/pages/index.njk", "site/pages/**/*.njk")


def test_single_star_does_not_cross_directories():
    assert match_glob("site/scss/core/_vars.scss", "site/scss/core/*.scss")
    assert not match_glob("site/scss/core/deep/_vars.scss", "site/scss/core/*.scss")


def test_leading_dot_slash_is_ignored():
    assert match_glob("./site/js/index.js", "site/**/*.js")
    assert match_glob("site/js/index.js", "./site/**/*.js")


def test_static_prefix():
    assert static_prefix("site/pages/**/*.njk") == Path("site/pages")
    assert static_prefix("site/scss/index.scss") == Path("site/scss")
    assert static_prefix("**/*.html") == Path(".")


def test_expand_globs_sorted_and_skips_missing(project):
    found = expand_globs(["site/pages/**/*.njk", "site/js/missing.js", "nowhere/**/*"])
    assert found == [Path("site/pages/about/team.njk"), Path("site/pages/index.njk")]


def test_expand_plain_file(project):
    assert expand_globs(["site/js/index.js"]) == [Path("site/js/index.js")]
