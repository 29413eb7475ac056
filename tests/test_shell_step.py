"""Tests for the shell environment step."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List

import pytest

from fedora_provisioner.config import ProvisionConfig
from fedora_provisioner.lib.command import CommandTimeout
from fedora_provisioner.lib.shell import ShellObservation, plan_shell, read_shells
from fedora_provisioner.pipeline import FAILURE, SKIPPED, SUCCESS, Context, StepFailed, run_pipeline
from fedora_provisioner.steps import ShellEnvironmentStep

from .conftest import FakeHost


def _obs(cfg: ProvisionConfig, **kw) -> ShellObservation:
    base = dict(
        framework_present=True,
        addons_present={a.name: True for a in cfg.shell_addons},
        current_shell="/usr/bin/zsh",
        target_shell="/usr/bin/zsh",
        target_registered=True,
    )
    base.update(kw)
    return ShellObservation(**base)


class TestPlanShell:
    """Decision logic, no host involved."""

    def test_everything_in_place(self, cfg: ProvisionConfig) -> None:
        assert plan_shell(_obs(cfg), cfg).is_noop

    def test_fresh_host(self, cfg: ProvisionConfig) -> None:
        plan = plan_shell(
            _obs(
                cfg,
                framework_present=False,
                addons_present={},
                current_shell="/bin/bash",
                target_registered=False,
            ),
            cfg,
        )

        assert plan.install_framework
        assert [a.name for a in plan.clone_addons] == ["zsh-autosuggestions", "zsh-syntax-highlighting", "powerlevel10k"]
        assert plan.register_shell
        assert plan.change_shell

    def test_registered_shell_not_appended_again(self, cfg: ProvisionConfig) -> None:
        plan = plan_shell(_obs(cfg, current_shell="/bin/bash"), cfg)
        assert plan.change_shell
        assert not plan.register_shell

    def test_only_missing_addons_cloned(self, cfg: ProvisionConfig) -> None:
        present = {a.name: True for a in cfg.shell_addons}
        present["powerlevel10k"] = False
        plan = plan_shell(_obs(cfg, addons_present=present), cfg)
        assert [a.name for a in plan.clone_addons] == ["powerlevel10k"]
        assert not plan.install_framework

    def test_missing_target_shell(self, cfg: ProvisionConfig) -> None:
        plan = plan_shell(_obs(cfg, target_shell=None, current_shell="/bin/bash"), cfg)
        assert not plan.change_shell
        assert plan.notes

    def test_symlinked_shell_counts_as_same(self, cfg: ProvisionConfig, tmp_path: Path) -> None:
        real = tmp_path / "zsh"
        real.write_text("")
        link = tmp_path / "zsh-link"
        link.symlink_to(real)
        plan = plan_shell(_obs(cfg, current_shell=str(link), target_shell=str(real)), cfg)
        assert not plan.change_shell


class TestShellEnvironmentStep:
    """Step behaviour against the fake host."""

    def test_fresh_install(self, ctx: Context, host: FakeHost, cfg: ProvisionConfig, tmp_downloads: Path) -> None:
        result = run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep()])

        assert result.get("60_shell_environment").status == SUCCESS
        assert (cfg.zsh_dir / "oh-my-zsh.sh").exists()
        for addon in cfg.shell_addons:
            assert (cfg.zsh_custom / addon.subdir).is_dir()
        assert "/usr/bin/zsh" in read_shells(cfg.shells_file)
        assert host.login_shells["tester"] == "/usr/bin/zsh"

        installer = host.runner.ran("sh")[0]
        env = host.runner.call_kwargs[host.runner.calls.index(installer)]["env"]
        assert installer[-1] == "--unattended"
        assert env["RUNZSH"] == "no" and env["CHSH"] == "no"
        assert env["ZSH"] == str(cfg.zsh_dir)
        assert list(tmp_downloads.iterdir()) == []

    def test_theme_is_shallow_clone(self, ctx: Context, host: FakeHost) -> None:
        ShellEnvironmentStep().run(ctx)
        clones = {c[-1].rsplit("/", 1)[-1]: c for c in host.runner.ran("git", "clone")}
        assert "--depth=1" in clones["powerlevel10k"]
        assert "--depth=1" not in clones["zsh-autosuggestions"]

    def test_second_run_is_skipped(self, ctx: Context, host: FakeHost) -> None:
        run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep()])
        calls_before = len(host.runner.calls)

        result = run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep()])

        assert result.get("60_shell_environment").status == SKIPPED
        assert host.runner.ran("git", "clone")  # from the first run only
        assert len(host.runner.ran("git", "clone")) == 3
        assert len(host.runner.ran("sh")) == 1
        assert host.runner.calls[calls_before:] == []

    def test_shells_file_not_duplicated(self, ctx: Context, host: FakeHost, cfg: ProvisionConfig) -> None:
        cfg.shells_file.write_text("/bin/bash\n/usr/bin/zsh\n")

        ShellEnvironmentStep().run(ctx)

        assert not host.runner.ran("tee", "-a")
        assert read_shells(cfg.shells_file).count("/usr/bin/zsh") == 1

    def test_chsh_failure_gives_manual_command(self, ctx: Context, host: FakeHost) -> None:
        host.runner.on("chsh", returncode=1)

        with pytest.raises(StepFailed) as exc:
            ShellEnvironmentStep().run(ctx)

        assert "chsh -s /usr/bin/zsh" in str(exc.value)
        assert "powerlevel10k" in exc.value.details["completed"]

    def test_chsh_failure_does_not_stop_run(self, ctx: Context, host: FakeHost) -> None:
        host.runner.on("chsh", returncode=1)

        class After:
            step_id = "99_after"
            description = "after"

            def run(self, ctx: Context) -> str:
                return "ran"

        result = run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep(), After()])

        assert result.get("60_shell_environment").status == FAILURE
        assert result.get("99_after").status == SUCCESS

    def test_installer_download_failure(self, cfg: ProvisionConfig, host: FakeHost, tmp_downloads: Path) -> None:
        ctx = Context(cfg=replace(cfg, shell_installer_url="https://example.invalid/missing.sh"), cmd=host.runner)

        result = run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep()])

        assert result.get("60_shell_environment").status == FAILURE
        assert not host.runner.ran("git", "clone")
        assert list(tmp_downloads.iterdir()) == []

    def test_clone_timeout_leaves_no_directory(self, ctx: Context, host: FakeHost, cfg: ProvisionConfig) -> None:
        addon = cfg.shell_addons[0]
        dest = cfg.zsh_custom / addon.subdir

        def killed(argv: List[str], kwargs: Dict[str, Any]) -> int:
            Path(argv[-1]).mkdir(parents=True)
            (Path(argv[-1]) / "HEAD").write_text("partial\n")
            raise CommandTimeout(f"Command timed out after {kwargs['timeout_s']}s: git clone")

        class After:
            step_id = "99_after"
            description = "after"

            def run(self, ctx: Context) -> str:
                return "ran"

        host.runner.on("git", "clone", addon.url, handler=killed)
        first = run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep(), After()])

        assert first.get("60_shell_environment").status == FAILURE
        assert "timed out" in first.get("60_shell_environment").message
        assert first.get("99_after").status == SUCCESS
        assert not dest.exists()

        host.runner.on("git", "clone", addon.url, handler=host._git_clone)
        second = run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep()])

        assert second.get("60_shell_environment").status == SUCCESS
        assert (dest / ".git").is_dir()

    def test_incomplete_clone_is_recloned(self, ctx: Context, host: FakeHost, cfg: ProvisionConfig) -> None:
        addon = cfg.shell_addons[0]
        dest = cfg.zsh_custom / addon.subdir
        dest.mkdir(parents=True)
        (dest / "HEAD").write_text("partial\n")

        result = run_pipeline(ctx=ctx, steps=[ShellEnvironmentStep()])

        assert result.get("60_shell_environment").status == SUCCESS
        assert [c for c in host.runner.ran("git", "clone") if addon.url in c]
        assert (dest / ".git").is_dir()
        assert not (dest / "HEAD").exists()
