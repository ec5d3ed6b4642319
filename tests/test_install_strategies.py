"""Tests for the npm and install script strategies."""

from pathlib import Path

import pytest

from conftest import FakeCommandRunner, failed, ok, run
from copilot_setup.core.errors import DownloadError
from copilot_setup.core.install_strategies import (
    InstallScriptStrategy,
    PackageManagerStrategy,
    package_reference,
)
from copilot_setup.core.versions import parse_version_request
from copilot_setup.models.installation import InstallStrategyName
from copilot_setup.models.target import TargetSpec


class TestPackageReference:
    """Tests for package_reference()."""

    @pytest.mark.parametrize("version, reference", [
        ("latest", "@github/copilot"),
        ("prerelease", "@github/copilot@prerelease"),
        ("v0.0.369", "@github/copilot@v0.0.369"),
        ("1.2.3", "@github/copilot@1.2.3"),
    ])
    def test_reference(self, version, reference):
        assert package_reference("@github/copilot", parse_version_request(version)) == reference


class TestPackageManagerStrategy:
    """Tests for PackageManagerStrategy."""

    def test_installs_globally(self):
        runner = FakeCommandRunner({"npm install": ok("added 1 package")})
        outcome = run(PackageManagerStrategy(runner).attempt(parse_version_request("v1.2.3")))

        assert outcome.succeeded
        assert outcome.strategy == InstallStrategyName.PACKAGE_MANAGER
        assert runner.commands() == ["npm install -g @github/copilot@v1.2.3"]

    def test_failure_is_reported_not_raised(self):
        runner = FakeCommandRunner({"npm install": failed(1, stderr="npm ERR! code E404")})
        outcome = run(PackageManagerStrategy(runner).attempt(parse_version_request("latest")))

        assert not outcome.succeeded
        assert "E404" in outcome.error_detail
        assert outcome.duration_seconds is not None

    def test_supports_every_platform(self):
        strategy = PackageManagerStrategy(FakeCommandRunner())
        assert strategy.supports(TargetSpec(platform="windows", arch="arm64"))
        assert strategy.supports(TargetSpec(platform="linux", arch="x64"))


class TestInstallScriptStrategy:
    """Tests for InstallScriptStrategy."""

    @pytest.fixture
    def script_download(self, monkeypatch):
        downloads = []

        def fake_download(url, destination, **kwargs):
            downloads.append(url)
            Path(destination).write_text("#!/bin/bash\necho installed\n")
            return destination

        monkeypatch.setattr("copilot_setup.core.install_strategies.download_file", fake_download)
        return downloads

    def test_only_posix_supported(self, context):
        strategy = InstallScriptStrategy(context, FakeCommandRunner())
        assert strategy.supports(TargetSpec(platform="linux", arch="arm64"))
        assert strategy.supports(TargetSpec(platform="macos", arch="x64"))
        assert not strategy.supports(TargetSpec(platform="windows", arch="x64"))

    def test_default_prefix_under_home(self, context):
        strategy = InstallScriptStrategy(context, FakeCommandRunner())
        assert strategy.prefix == context.home_dir / ".local"

    def test_exact_version_passed_to_script(self, context, tmp_path, script_download):
        prefix = tmp_path / "prefix"
        runner = FakeCommandRunner({"bash": ok()})
        strategy = InstallScriptStrategy(context, runner, prefix=prefix)

        outcome = run(strategy.attempt(parse_version_request("v0.0.369")))

        assert outcome.succeeded
        assert outcome.strategy == InstallStrategyName.INSTALL_SCRIPT
        assert script_download == ["https://gh.io/copilot-install"]
        call = runner.calls[0]
        assert call["argv"][0] == "bash"
        assert call["argv"][1].endswith("copilot-install.sh")
        assert call["env"] == {"PREFIX": str(prefix), "VERSION": "v0.0.369"}
        assert context.added_paths == [str(prefix / "bin")]

    @pytest.mark.parametrize("version", ["latest", "prerelease"])
    def test_version_not_passed_unless_exact(self, context, script_download, version):
        runner = FakeCommandRunner({"bash": ok()})
        run(InstallScriptStrategy(context, runner).attempt(parse_version_request(version)))
        assert "VERSION" not in runner.calls[0]["env"]

    def test_script_workdir_removed(self, context, script_download):
        runner = FakeCommandRunner({"bash": ok()})
        run(InstallScriptStrategy(context, runner).attempt(parse_version_request("latest")))

        script = Path(runner.calls[0]["argv"][1])
        assert not script.parent.exists()
        assert list(context.temp_dir.iterdir()) == []

    def test_script_failure_is_reported(self, context, script_download):
        runner = FakeCommandRunner({"bash": failed(3, stderr="unsupported platform")})
        outcome = run(InstallScriptStrategy(context, runner).attempt(parse_version_request("latest")))

        assert not outcome.succeeded
        assert "unsupported platform" in outcome.error_detail
        assert context.added_paths == []

    def test_download_failure_is_reported(self, context, monkeypatch):
        def fail_download(url, destination, **kwargs):
            raise DownloadError(f"Failed to download {url}: timed out")

        monkeypatch.setattr("copilot_setup.core.install_strategies.download_file", fail_download)
        runner = FakeCommandRunner()

        outcome = run(InstallScriptStrategy(context, runner).attempt(parse_version_request("latest")))

        assert not outcome.succeeded
        assert "timed out" in outcome.error_detail
        assert runner.calls == []
