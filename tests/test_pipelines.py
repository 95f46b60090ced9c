import pytest

from src.sitebuild import BuildError


def _tree(root):
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def test_build_produces_minified_bundles_and_rewritten_pages(project, runner, fake_esbuild):
    runner.run("build")
    build = project / "build"
    index = (build / "index.html").read_text(encoding="utf-8")
    assert 'href="css/bundle.min.css"' in index
    assert 'src="js/bundle.min.js"' in index
    for ref in ("css/bundle.min.css", "js/bundle.min.js"):
        assert (build / ref).is_file()
    assert not list(build.rglob("*.map"))
    assert not (project / "tmp").exists()


def test_prod_artifacts_are_smaller_than_dev(project, runner, fake_esbuild):
    runner.run("dev")
    runner.run("build")
    assert (project / "build/css/bundle.min.css").stat().st_size < (
        project / "tmp/css/bundle.css"
    ).stat().st_size
    assert (project / "build/js/bundle.min.js").stat().st_size < (
        project / "tmp/js/bundle.js"
    ).stat().st_size


def test_build_starts_from_a_clean_root(project, runner, fake_esbuild):
    stale = project / "build" / "js" / "old.js"
    stale.parent.mkdir(parents=True)
    stale.write_text("stale", encoding="utf-8")
    runner.run("build")
    assert not stale.exists()


def test_dev_pipeline_fills_the_dev_root(project, runner, fake_esbuild):
    results = runner.run("dev")
    assert [r.name for r in results][0] == "clean"
    assert sorted(r.name for r in results[1:]) == ["assets", "html", "scripts", "styles"]
    assert all(r.ok for r in results)
    tmp = project / "tmp"
    for rel in ("index.html", "about/team.html", "css/bundle.css", "css/bundle.css.map",
                "js/bundle.js", "assets/img/photo.jpg"):
        assert (tmp / rel).is_file(), rel


def test_style_error_is_skipped_in_dev(project, runner, fake_esbuild):
    (project / "site" / "scss" / "index.scss").write_text(".a { color: red;\n", encoding="utf-8")
    results = {r.name: r for r in runner.run("dev")}
    assert results["styles"].status == "skipped"
    assert results["html"].ok and results["scripts"].ok
    assert (project / "tmp" / "index.html").is_file()
    assert not (project / "tmp" / "css" / "bundle.css").exists()


def test_style_error_aborts_build(project, runner, fake_esbuild):
    (project / "site" / "scss" / "index.scss").write_text(".a { color: red;\n", encoding="utf-8")
    with pytest.raises(BuildError, match="stylesProd"):
        runner.run("build")
    assert not (project / "build" / "css" / "bundle.min.css").exists()


def test_build_twice_is_byte_identical(project, runner, fake_esbuild):
    runner.run("build")
    first = _tree(project / "build")
    runner.run("build")
    assert _tree(project / "build") == first
