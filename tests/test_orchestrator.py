"""End-to-end tests for the setup orchestrator and the step entry point."""

import json
from pathlib import Path

import pytest

from conftest import FakeCommandRunner, FakeSession, failed, fast_probe, make_executable, ok, run
from copilot_setup.core.artifact_manager import ArtifactManager
from copilot_setup.core.errors import DownloadError
from copilot_setup.core.install_strategies import InstallScriptStrategy, PackageManagerStrategy
from copilot_setup.core.orchestrator import SetupOrchestrator
from copilot_setup.core.platform_resolver import PlatformResolver
from copilot_setup.core.runtime_prerequisite import RuntimePrerequisite
from copilot_setup.core.verification import VerificationEngine
from copilot_setup.models.installation import InstallStrategyName
from config.settings import Settings
from main import run_setup


def installs_copilot(directory: Path):
    """Command response that drops a copilot executable into directory."""
    def respond(argv, env):
        make_executable(directory, "copilot")
        return ok("installed")
    return respond


def build(context, runner, system="Linux", machine="x86_64", with_prerequisite=False, session=None,
          artifact_manager=None):
    return SetupOrchestrator(
        context=context,
        resolver=PlatformResolver(system=lambda: system, machine=lambda: machine),
        prerequisite=RuntimePrerequisite(context, runner) if with_prerequisite else None,
        strategies=[
            PackageManagerStrategy(runner),
            InstallScriptStrategy(context, runner),
        ],
        verifier=VerificationEngine(context, runner, probe=fast_probe(session or FakeSession())),
        artifact_manager=artifact_manager
    )


@pytest.fixture
def script_download(monkeypatch):
    downloads = []

    def fake_download(url, destination, **kwargs):
        downloads.append(url)
        Path(destination).write_text("#!/bin/bash\n")
        return destination

    monkeypatch.setattr("copilot_setup.core.install_strategies.download_file", fake_download)
    return downloads


class TestSetupFlow:
    """Full runs through run_setup()."""

    def test_latest_install_publishes_outputs(self, context, bin_dir, actions, script_download):
        make_executable(bin_dir, "node")
        make_executable(bin_dir, "npm")
        runner = FakeCommandRunner({
            "node --version": ok("v24.1.0"),
            "npm --version": ok("10.9.2"),
            "npm install -g @github/copilot": installs_copilot(bin_dir),
            "copilot -v": ok("2.0.0\n"),
        })
        orchestrator = build(context, runner, with_prerequisite=True)

        exit_code = run(run_setup(Settings(), actions, context, orchestrator))

        assert exit_code == 0
        assert actions.outputs == {"version": "2.0.0", "path": str(bin_dir / "copilot")}
        assert actions.failures == []
        # The package manager succeeded, so the script was never fetched
        assert script_download == []
        assert runner.commands() == [
            "node --version",
            "npm --version",
            "npm install -g @github/copilot",
            "copilot -v",
        ]

    def test_version_mismatch_fails_step(self, context, bin_dir, actions):
        runner = FakeCommandRunner({
            "npm install": installs_copilot(bin_dir),
            "copilot -v": ok("1.0.0"),
        })
        orchestrator = build(context, runner)

        exit_code = run(run_setup(Settings(version="v9.9.9"), actions, context, orchestrator))

        assert exit_code == 1
        assert actions.outputs == {}
        assert len(actions.failures) == 1
        assert "VersionMismatch" in actions.failures[0]
        assert "verification" in actions.failures[0]

    def test_script_fallback_after_package_manager_failure(self, context, actions, script_download):
        prefix_bin = context.home_dir / ".local" / "bin"
        runner = FakeCommandRunner({
            "npm install": failed(1, stderr="npm ERR! 403"),
            "bash": installs_copilot(prefix_bin),
            "copilot -v": ok("0.0.369"),
        })
        orchestrator = build(context, runner)

        result = run(orchestrator.run("v0.0.369"))

        assert result.success
        assert [o.strategy for o in result.install_outcomes] == [
            InstallStrategyName.PACKAGE_MANAGER,
            InstallStrategyName.INSTALL_SCRIPT,
        ]
        assert not result.install_outcomes[0].succeeded
        assert result.install_outcomes[1].succeeded
        assert result.verification.resolved_path == str(prefix_bin / "copilot")
        assert actions.paths == [str(prefix_bin)]
        assert script_download == ["https://gh.io/copilot-install"]


class TestStageFailures:
    """Failures stop the run at the stage that raised."""

    def test_windows_has_no_fallback(self, context, script_download):
        runner = FakeCommandRunner({"npm install": failed(1, stderr="EPERM")})
        orchestrator = build(context, runner, system="Windows", machine="AMD64")

        result = run(orchestrator.run("latest"))

        assert not result.success
        assert result.error_type == "InstallationFailed"
        assert result.failed_stage == "install"
        assert "EPERM" in result.error_detail
        assert "install_script" not in result.error_detail
        assert script_download == []

    def test_both_strategies_fail(self, context, script_download, tmp_path):
        runner = FakeCommandRunner({
            "npm install": failed(1, stderr="npm ERR!"),
            "bash": failed(1, stderr="script ERR!"),
        })
        artifacts = ArtifactManager(tmp_path / "artifacts", run_id="failed-install")
        result = run(build(context, runner, artifact_manager=artifacts).run("latest"))

        assert result.error_type == "InstallationFailed"
        assert [(o.strategy, o.succeeded) for o in result.install_outcomes] == [
            (InstallStrategyName.PACKAGE_MANAGER, False),
            (InstallStrategyName.INSTALL_SCRIPT, False),
        ]
        summary = json.loads((artifacts.run_base_path / "summary.json").read_text())
        assert [o["strategy"] for o in summary["install_outcomes"]] == ["package_manager", "install_script"]
        assert "script ERR!" in summary["install_outcomes"][1]["error_detail"]
        assert "package_manager: " in result.error_detail
        assert "install_script: " in result.error_detail
        assert not any(c.startswith("copilot") for c in runner.commands())

    def test_unsupported_platform_stops_before_any_command(self, context):
        runner = FakeCommandRunner()
        result = run(build(context, runner, system="FreeBSD", with_prerequisite=True).run("latest"))

        assert result.error_type == "UnsupportedPlatform"
        assert result.failed_stage == "configuration"
        assert runner.calls == []

    def test_invalid_version_stops_before_anything(self, context, actions):
        runner = FakeCommandRunner()
        result = run(build(context, runner).run("not-a-version", credential="secret"))

        assert result.error_type == "InvalidVersion"
        assert runner.calls == []
        assert actions.exported == {}
        assert actions.masked == []

    def test_prerequisite_failure_skips_install(self, context, bin_dir, monkeypatch):
        make_executable(bin_dir, "node")
        make_executable(bin_dir, "npm")

        def fail_download(url, destination, **kwargs):
            raise DownloadError(f"Failed to download {url}: unreachable")

        monkeypatch.setattr("copilot_setup.core.runtime_prerequisite.download_file", fail_download)
        runner = FakeCommandRunner({"node --version": ok("v20.0.0"), "npm --version": ok("10.2.0")})

        result = run(build(context, runner, with_prerequisite=True).run("latest"))

        assert result.error_type == "PrerequisiteUnavailable"
        assert result.failed_stage == "prerequisites"
        assert len(result.runtime_checks) == 1
        assert result.runtime_checks[0].runtime_version == "v20.0.0"
        assert not result.runtime_checks[0].satisfies_minimums
        assert not any(c.startswith("npm install") for c in runner.commands())


class TestCredential:
    """Credential export and interactive verification."""

    def test_credential_masked_exported_and_verified(self, context, bin_dir, actions):
        runner = FakeCommandRunner({
            "npm install": installs_copilot(bin_dir),
            "copilot -v": ok("2.0.0"),
        })
        session = FakeSession(chunks=[b"Welcome Alice\r\n"], exit_after=0.01)
        orchestrator = build(context, runner, session=session)

        result = run(orchestrator.run("latest", credential="s3cret"))

        assert result.success
        assert result.verification.interactive_confirmed
        assert actions.masked == ["s3cret"]
        assert actions.exported == {"GH_TOKEN": "s3cret"}
        spawned = orchestrator.verifier.probe.session_factory.spawned[0]
        assert spawned["env"]["GH_TOKEN"] == "s3cret"

    def test_falls_back_to_existing_variable(self, context, actions):
        context.environ["GITHUB_TOKEN"] = "from-env"
        orchestrator = build(context, FakeCommandRunner())

        assert orchestrator.export_credential(None) == "from-env"
        assert actions.exported == {"GH_TOKEN": "from-env"}
        assert actions.masked == ["from-env"]

    def test_gh_token_preferred_over_github_token(self, context):
        context.environ["GH_TOKEN"] = "gh"
        context.environ["GITHUB_TOKEN"] = "github"
        assert build(context, FakeCommandRunner()).export_credential("") == "gh"

    def test_no_credential_means_static_verification(self, context, bin_dir, actions):
        runner = FakeCommandRunner({
            "npm install": installs_copilot(bin_dir),
            "copilot -v": ok("2.0.0"),
        })
        orchestrator = build(context, runner)

        result = run(orchestrator.run("latest"))

        assert result.success
        assert not result.verification.interactive_confirmed
        assert actions.exported == {}
        assert orchestrator.verifier.probe.session_factory.spawned == []

    def test_missing_handshake_saved_as_transcript(self, context, bin_dir, tmp_path):
        runner = FakeCommandRunner({
            "npm install": installs_copilot(bin_dir),
            "copilot -v": ok("2.0.0"),
        })
        session = FakeSession(chunks=[b"Please run /login\r\n"], exit_after=0.01)
        artifacts = ArtifactManager(tmp_path / "artifacts", run_id="test-run")
        orchestrator = build(context, runner, session=session, artifact_manager=artifacts)

        result = run(orchestrator.run("latest", credential="s3cret"))

        assert result.error_type == "InteractiveHandshakeNotObserved"
        run_dir = tmp_path / "artifacts" / "runs" / "test-run"
        assert (run_dir / "transcript.txt").read_text() == "Please run /login\n"
        summary = json.loads((run_dir / "summary.json").read_text())
        assert summary["success"] is False
        assert summary["failed_stage"] == "verification"
        assert summary["target"] == {"platform": "linux", "arch": "x64"}
