import pytest

from bundleguard.assets import (
    is_protectable,
    iterate_files,
    layout_root,
    layout_subdirectory,
    reintegrate,
    select_assets,
    stage,
)
from bundleguard.exceptions import ReintegrationError
from bundleguard.host import RawSource


class TestLayouts:
    """Test target-platform directory layouts."""

    @pytest.mark.parametrize(
        "target_type,expected",
        [
            ("browser", ""),
            ("nativescript-ios", "app"),
            ("nativescript-android", "assets/app"),
            ("NativeScript-Android", "assets/app"),
            ("something-else", ""),
        ],
    )
    def test_layout_subdirectory(self, target_type, expected):
        assert layout_subdirectory(target_type) == expected

    def test_layout_root_browser(self, tmp_path):
        assert layout_root(tmp_path, "browser") == tmp_path

    def test_layout_root_android(self, tmp_path):
        assert layout_root(tmp_path, "nativescript-android") == tmp_path / "assets" / "app"


class TestSelection:
    """Test the protectable asset allow-list."""

    @pytest.mark.parametrize(
        "name",
        [
            "bundle.js",
            "index.html",
            "page.htm",
            "main.jsbundle",
            "index.android.bundle",
            "view.xhtml",
            "page.jsp",
            "page.asp",
            "page.aspx",
            "bundle.js.map",
            "js/nested/app.js",
        ],
    )
    def test_protectable(self, name):
        assert is_protectable(name)

    @pytest.mark.parametrize("name", ["styles.css", "logo.png", "data.json", "bundle.js.gz", "js"])
    def test_not_protectable(self, name):
        assert not is_protectable(name)

    def test_select_keeps_order_and_drops_duplicates(self):
        names = ["b.js", "styles.css", "a.html", "b.js"]
        assert select_assets(names) == ["b.js", "a.html"]


class TestStage:
    """Test copying assets into the staging directory."""

    def test_stage_browser(self, tmp_path, compilation):
        root = stage(compilation.assets, list(compilation.assets), tmp_path, "browser")

        assert root == tmp_path
        assert (tmp_path / "bundle.js").read_bytes() == b"console.log('hello');"
        assert (tmp_path / "index.html").read_bytes() == b"<html></html>"
        assert not (tmp_path / "styles.css").exists()

    def test_stage_creates_nested_directories(self, tmp_path):
        assets = {"js/vendor/lib.js": RawSource("lib();")}
        stage(assets, assets, tmp_path, "browser")

        assert (tmp_path / "js" / "vendor" / "lib.js").read_text() == "lib();"

    def test_stage_ios_layout(self, tmp_path, compilation):
        root = stage(compilation.assets, ["bundle.js"], tmp_path, "nativescript-ios")

        assert root == tmp_path / "app"
        assert (tmp_path / "app" / "bundle.js").exists()
        assert not (tmp_path / "bundle.js").exists()

    def test_stage_android_layout(self, tmp_path, compilation):
        stage(compilation.assets, ["bundle.js"], tmp_path, "nativescript-android")
        assert (tmp_path / "assets" / "app" / "bundle.js").exists()

    def test_stage_skips_names_missing_from_assets(self, tmp_path, compilation):
        stage(compilation.assets, ["bundle.js", "ghost.js"], tmp_path, "browser")

        assert (tmp_path / "bundle.js").exists()
        assert not (tmp_path / "ghost.js").exists()

    def test_stage_with_no_candidates_creates_root(self, tmp_path):
        root = stage({}, [], tmp_path / "in", "nativescript-ios")

        assert root.is_dir()
        assert list(root.iterdir()) == []


class TestReintegrate:
    """Test publishing the tool's output back into the build."""

    def test_iterate_files_depth_first_sorted(self, tmp_path):
        (tmp_path / "b.js").write_text("b")
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "z.js").write_text("z")
        (tmp_path / "c.html").write_text("c")

        assert list(iterate_files(tmp_path)) == ["a/z.js", "b.js", "c.html"]

    def test_reintegrate_publishes_every_file(self, tmp_path):
        (tmp_path / "bundle.js").write_bytes(b"protected")
        (tmp_path / "js").mkdir()
        (tmp_path / "js" / "app.js").write_bytes(b"also protected")
        published = {}

        applied = reintegrate(tmp_path, lambda name, asset: published.__setitem__(name, asset.source()))

        assert applied == ["bundle.js", "js/app.js"]
        assert published == {"bundle.js": b"protected", "js/app.js": b"also protected"}

    def test_reintegrate_missing_root_is_a_no_op(self, tmp_path):
        published = []
        assert reintegrate(tmp_path / "missing", lambda name, asset: published.append(name)) == []
        assert published == []

    def test_reintegrate_root_not_a_directory(self, tmp_path):
        output = tmp_path / "output"
        output.write_text("not a directory")

        with pytest.raises(ReintegrationError, match="not a directory"):
            reintegrate(output, lambda name, asset: None)

    def test_reintegrate_empty_output(self, tmp_path):
        assert reintegrate(tmp_path, lambda name, asset: None) == []

    @pytest.mark.parametrize("target_type", ["browser", "nativescript-ios", "nativescript-android"])
    def test_stage_then_reintegrate_replaces_asset_objects(self, tmp_path, compilation, target_type):
        originals = dict(compilation.assets)
        root = stage(compilation.assets, list(compilation.assets), tmp_path, target_type)

        applied = reintegrate(root, compilation.update_asset)

        assert applied == ["bundle.js", "index.html"]
        for name in applied:
            assert compilation.assets[name] is not originals[name]
            assert compilation.assets[name].source() == originals[name].source()
        assert compilation.assets["styles.css"] is originals["styles.css"]
