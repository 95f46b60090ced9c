import pytest

from src.sitebuild.variants import ErrorPolicy, Profile, error_policy, select


def test_error_policy_follows_profile():
    assert error_policy(Profile.DEV) is ErrorPolicy.LOG_AND_SKIP
    assert error_policy(Profile.PROD) is ErrorPolicy.ABORT
    assert error_policy(Profile.ANY) is ErrorPolicy.ABORT


def test_dev_favors_traceable_output():
    assert select("style", Profile.DEV)["sourcemap"] is True
    assert select("style", Profile.DEV)["minify"] is False
    assert select("script", Profile.DEV) == {
        "outfile": "bundle.js",
        "sourcemap": True,
        "minify": False,
        "legal_comments": None,
    }
    assert select("markup", Profile.DEV)["rewrites"] == []


def test_prod_favors_optimized_output():
    style = select("style", Profile.PROD)
    assert style["outfile"] == "bundle.min.css"
    assert style["sourcemap"] is False
    assert style["autoprefix"] and style["minify"]
    assert select("script", Profile.PROD)["legal_comments"] == "none"
    assert select("asset", Profile.PROD)["optimize"] is True
    assert ("bundle.css", "bundle.min.css") in select("markup", Profile.PROD)["rewrites"]


def test_select_returns_a_copy():
    select("markup", Profile.PROD)["rewrites"].clear()
    assert select("markup", Profile.PROD)["rewrites"]


def test_agnostic_tasks_get_no_options():
    assert select(None, Profile.DEV) == {}
    assert select("script", Profile.ANY) == {}


def test_unknown_kind_raises():
    with pytest.raises(KeyError):
        select("fonts", Profile.DEV)
