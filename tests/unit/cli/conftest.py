from unittest.mock import MagicMock

import pytest
import yaml


@pytest.fixture
def settings_file(tmp_path, install_location):
    """A settings file pointing the CLI at the temporary install location."""
    path = tmp_path / "bundleguard.yaml"
    path.write_text(
        yaml.dump(
            {
                "install_location": str(install_location),
                "platform": "linux",
                "api_url": "https://auth.test",
                "services_url": "https://services.test",
            }
        )
    )
    return path


@pytest.fixture
def ctx(settings_file):
    """Typer context as the entrypoint callback leaves it."""
    context = MagicMock()
    context.obj = {"settings": str(settings_file)}
    return context


@pytest.fixture
def build_dir(tmp_path):
    build = tmp_path / "dist"
    (build / "js").mkdir(parents=True)
    (build / "index.html").write_text("<html></html>")
    (build / "js" / "app.js").write_text("app();")
    (build / "styles.css").write_text("body {}")
    return build
