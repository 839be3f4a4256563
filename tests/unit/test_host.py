import pytest

from bundleguard.exceptions import BundleGuardError
from bundleguard.host import (
    AsyncSeriesHook,
    Chunk,
    Compilation,
    Compiler,
    DirectoryBuild,
    RawSource,
    asset_bytes,
)


class TestRawSource:
    def test_bytes(self):
        source = RawSource(b"abc")
        assert source.source() == b"abc"
        assert source.size() == 3

    def test_text_is_encoded(self):
        assert RawSource("é").source() == "é".encode()

    def test_asset_bytes_accepts_text_sources(self):
        class TextSource:
            def source(self):
                return "text"

            def size(self):
                return 4

        assert asset_bytes(TextSource()) == b"text"


class TestCompilation:
    def test_update_existing_asset(self, compilation):
        compilation.update_asset("bundle.js", RawSource("new"))
        assert compilation.get_asset("bundle.js").source() == b"new"

    def test_update_missing_asset(self, compilation):
        with pytest.raises(BundleGuardError, match="does not exist"):
            compilation.update_asset("missing.js", RawSource("new"))

    def test_emit_new_asset(self, compilation):
        compilation.emit_asset("extra.js", RawSource("x"))
        assert "extra.js" in compilation.assets

    def test_emit_existing_asset(self, compilation):
        with pytest.raises(BundleGuardError, match="already exists"):
            compilation.emit_asset("bundle.js", RawSource("x"))

    def test_get_logger_namespace(self, compilation):
        assert compilation.get_logger("Plugin").name == "bundleguard.build.Plugin"


class TestAsyncSeriesHook:
    """Test sequential tap execution and completion callbacks."""

    def test_no_taps_completes(self, compilation, run_hook):
        assert run_hook(AsyncSeriesHook("emit"), compilation) == [None]

    def test_taps_run_in_order(self, compilation, run_hook):
        hook = AsyncSeriesHook("emit")
        order = []
        hook.tap_async("first", lambda c, done: (order.append("first"), done()))
        hook.tap_async("second", lambda c, done: (order.append("second"), done()))

        assert run_hook(hook, compilation) == [None]
        assert order == ["first", "second"]

    def test_error_stops_the_series(self, compilation, run_hook):
        hook = AsyncSeriesHook("emit")
        error = BundleGuardError("boom")
        later = []
        hook.tap_async("failing", lambda c, done: done(error))
        hook.tap_async("later", lambda c, done: (later.append(True), done()))

        assert run_hook(hook, compilation) == [error]
        assert later == []

    def test_second_completion_is_ignored(self, compilation, run_hook, caplog):
        hook = AsyncSeriesHook("emit")

        def twice(c, done):
            done()
            done()

        hook.tap_async("twice", twice)

        assert run_hook(hook, compilation) == [None]
        assert "completed more than once" in caplog.text


class TestCompiler:
    def test_run_hooks_order(self, compilation):
        compiler = Compiler()
        order = []
        compiler.hooks.emit.tap_async("e", lambda c, done: (order.append("emit"), done()))
        compiler.hooks.process_assets.tap_async("p", lambda c, done: (order.append("process"), done()))

        compiler.run_hooks(compilation)

        assert order == ["process", "emit"]

    def test_run_hooks_raises_tap_error(self, compilation):
        compiler = Compiler()
        compiler.hooks.process_assets.tap_async("p", lambda c, done: done(BundleGuardError("failed")))

        with pytest.raises(BundleGuardError, match="failed"):
            compiler.run_hooks(compilation)

    def test_run_hooks_wraps_string_errors(self, compilation):
        compiler = Compiler()
        compiler.hooks.emit.tap_async("e", lambda c, done: done("plain failure"))

        with pytest.raises(BundleGuardError, match="plain failure"):
            compiler.run_hooks(compilation)

    def test_context_defaults_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert Compiler().context == tmp_path


class TestDirectoryBuild:
    """Test directory-backed builds."""

    @pytest.fixture
    def build_dir(self, tmp_path):
        build = tmp_path / "dist"
        (build / "js").mkdir(parents=True)
        (build / "index.html").write_text("<html></html>")
        (build / "js" / "app.js").write_text("app();")
        return build

    def test_load(self, build_dir):
        compilation = DirectoryBuild(build_dir).load()

        assert sorted(compilation.assets) == ["index.html", "js/app.js"]
        assert compilation.chunks == [Chunk("main", ["index.html", "js/app.js"])]

    def test_load_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DirectoryBuild(tmp_path / "missing").load()

    def test_run_writes_in_place(self, build_dir):
        build = DirectoryBuild(build_dir)

        def rewrite(compilation, done):
            compilation.update_asset("js/app.js", RawSource("changed();"))
            done()

        build.compiler.hooks.process_assets.tap_async("rewrite", rewrite)
        build.run()

        assert (build_dir / "js" / "app.js").read_text() == "changed();"

    def test_run_writes_to_output_dir(self, build_dir, tmp_path):
        output = tmp_path / "protected"
        DirectoryBuild(build_dir, output).run()

        assert (output / "index.html").read_text() == "<html></html>"
        assert (output / "js" / "app.js").read_text() == "app();"

    def test_context_defaults_to_build_dir(self, build_dir):
        assert DirectoryBuild(build_dir).compiler.context == build_dir
