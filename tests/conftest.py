"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

import pytest

from fedora_provisioner.config import ProvisionConfig, load_config
from fedora_provisioner.lib.command import CmdResult, CommandError, CommandRunner, fmt_argv
from fedora_provisioner.pipeline import Context

FONT_URL = "https://example.invalid/JetBrainsMono.zip"
INSTALLER_URL = "https://example.invalid/install.sh"
FONT_FAMILY = "JetBrainsMono Nerd Font"

DEFAULT_FONT_MEMBERS = {
    "JetBrainsMonoNerdFont-Regular.ttf": b"ttf",
    "JetBrainsMonoNerdFont-Bold.ttf": b"ttf",
    "JetBrainsMonoNerdFontMono-Italic.otf": b"otf",
    "OFL.txt": b"license",
    "README.md": b"readme",
    "preview/sample.png": b"png",
}


def make_zip(path: Path, members: Dict[str, bytes]) -> None:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)


Handler = Callable[[List[str], Dict[str, Any]], Optional[int]]


class FakeRunner(CommandRunner):
    """Records commands instead of running them.

    Handlers are matched on an argv prefix; the most recent registration
    wins. A handler may return an exit code (None means 0) and may touch
    the filesystem to simulate the command's effect.
    """

    def __init__(self, *, missing: Sequence[str] = ()) -> None:
        super().__init__(dry_run=False, use_sudo=False)
        self.calls: List[List[str]] = []
        self.call_kwargs: List[Dict[str, Any]] = []
        self.missing: Set[str] = set(missing)
        self.privileges_ok = True
        self._handlers: List[Tuple[Tuple[str, ...], Optional[Handler], int, str]] = []

    def which(self, tool: str) -> Optional[str]:
        if tool in self.missing:
            return None
        return f"/usr/bin/{tool}"

    def verify_privileges(self) -> bool:
        return self.privileges_ok

    def on(self, *prefix: str, handler: Optional[Handler] = None, returncode: int = 0, stdout: str = "") -> None:
        self._handlers.append((tuple(prefix), handler, returncode, stdout))

    def run(self, argv, *, check=True, env=None, cwd=None, input_text=None, timeout_s=None, capture=True) -> CmdResult:
        argv_list = list(argv)
        kwargs = {"env": env, "cwd": cwd, "input_text": input_text, "timeout_s": timeout_s}
        self.calls.append(argv_list)
        self.call_kwargs.append(kwargs)

        returncode, stdout = 0, ""
        for prefix, handler, rc, out in reversed(self._handlers):
            if tuple(argv_list[: len(prefix)]) == prefix:
                returncode, stdout = rc, out
                if handler is not None:
                    r = handler(argv_list, kwargs)
                    if r is not None:
                        returncode = r
                break

        result = CmdResult(argv=argv_list, returncode=returncode, stdout=stdout, stderr="")
        if check and returncode != 0:
            raise CommandError(f"Command failed ({returncode}): {fmt_argv(argv_list)}", result)
        return result

    def ran(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == tuple(prefix)]


class FakeHost:
    """A FakeRunner wired to simulate a Fedora host inside tmp_path."""

    def __init__(self, root: Path, cfg: ProvisionConfig) -> None:
        self.root = root
        self.cfg = cfg
        self.runner = FakeRunner()
        self.login_shells: Dict[str, str] = {cfg.user: "/bin/bash"}
        self.enabled_units: Set[str] = set()
        self.downloads: Dict[str, bytes] = {
            INSTALLER_URL: b"#!/bin/sh\necho installing\n",
        }
        font_zip = root / "fixture-font.zip"
        make_zip(font_zip, DEFAULT_FONT_MEMBERS)
        self.downloads[FONT_URL] = font_zip.read_bytes()

        r = self.runner
        r.on("curl", handler=self._curl)
        r.on("sh", handler=self._installer)
        r.on("git", "clone", handler=self._git_clone)
        r.on("unzip", handler=self._unzip)
        r.on("fc-list", stdout=f"{FONT_FAMILY}\nDejaVu Sans\n")
        r.on("tee", handler=self._tee)
        r.on("dnf", "config-manager", handler=self._add_repo)
        r.on("systemctl", "is-enabled", handler=self._unit_state)
        r.on("systemctl", "is-active", handler=self._unit_state)
        r.on("systemctl", "enable", handler=self._enable_unit)
        r.on("chsh", handler=self._chsh)
        r.on("stow", handler=self._stow)

    def _curl(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        dest = Path(argv[argv.index("-o") + 1])
        data = self.downloads.get(argv[-1])
        if data is None:
            return 22
        dest.write_bytes(data)
        return 0

    def _installer(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        zsh = Path(kwargs["env"]["ZSH"])
        (zsh / "custom").mkdir(parents=True, exist_ok=True)
        (zsh / "oh-my-zsh.sh").write_text("# framework\n")
        return 0

    def _git_clone(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        dest = Path(argv[-1])
        if dest.exists():
            return 128
        dest.mkdir(parents=True)
        (dest / ".git").mkdir()
        return 0

    def _unzip(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        archive, dest = Path(argv[3]), Path(argv[5])
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        except zipfile.BadZipFile:
            return 9
        return 0

    def _tee(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        append = argv[1] == "-a"
        path = Path(argv[2] if append else argv[1])
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a" if append else "w", encoding="utf-8") as f:
            f.write(kwargs["input_text"] or "")
        return 0

    def _add_repo(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        self.cfg.repos_dir.mkdir(parents=True, exist_ok=True)
        (self.cfg.repos_dir / "docker-ce.repo").write_text("[docker-ce-stable]\n")
        return 0

    def _unit_state(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        return 0 if argv[-1] in self.enabled_units else 1

    def _enable_unit(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        self.enabled_units.add(argv[-1])
        return 0

    def _chsh(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        self.login_shells[argv[-1]] = argv[2]
        return 0

    def _stow(self, argv: List[str], kwargs: Dict[str, Any]) -> int:
        source = Path(kwargs["cwd"])
        target = Path(argv[1].split("=", 1)[1])
        return 0 if _stow_tree(source, target) else 1


def _stow_tree(source: Path, target: Path) -> bool:
    """Minimal symlink-farm: link each entry, descending into real directories."""

    ok = True
    for entry in sorted(source.iterdir()):
        if entry.name in {".git", ".stow-local-ignore"}:
            continue
        dest = target / entry.name
        if dest.is_symlink():
            if Path(os.readlink(dest)) != entry:
                ok = False
        elif not dest.exists():
            dest.symlink_to(entry)
        elif dest.is_dir() and entry.is_dir():
            ok = _stow_tree(entry, dest) and ok
        else:
            ok = False
    return ok


@pytest.fixture
def home(tmp_path: Path) -> Path:
    h = tmp_path / "home" / "tester"
    h.mkdir(parents=True)
    return h


@pytest.fixture
def dotfiles_dir(tmp_path: Path) -> Path:
    d = tmp_path / "dotfiles"
    (d / ".config" / "foot").mkdir(parents=True)
    (d / ".config" / "foot" / "foot.ini").write_text("font=JetBrainsMono Nerd Font:size=11\n")
    (d / ".zshrc").write_text("export ZSH=$HOME/.oh-my-zsh\n")
    (d / ".tmux.conf").write_text("set -g mouse on\n")
    (d / ".git").mkdir()
    return d


@pytest.fixture
def cfg(tmp_path: Path, home: Path, dotfiles_dir: Path) -> ProvisionConfig:
    etc = tmp_path / "etc"
    (etc / "yum.repos.d").mkdir(parents=True)
    (etc / "shells").write_text("/bin/sh\n/bin/bash\n")
    return load_config(
        env={"HOME": str(home), "USER": "tester"},
        overrides={
            "dotfiles_dir": dotfiles_dir,
            "repos_dir": etc / "yum.repos.d",
            "shells_file": etc / "shells",
            "font_url": FONT_URL,
            "font_family": FONT_FAMILY,
            "shell_installer_url": INSTALLER_URL,
            "network_timeout_s": 5.0,
        },
    )


@pytest.fixture
def tmp_downloads(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Route temporary downloads into a directory the test can inspect."""
    d = tmp_path / "tmp"
    d.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(d))
    return d


@pytest.fixture
def host(tmp_path: Path, cfg: ProvisionConfig, tmp_downloads: Path, monkeypatch: pytest.MonkeyPatch) -> FakeHost:
    h = FakeHost(tmp_path, cfg)
    monkeypatch.setattr("fedora_provisioner.lib.shell.login_shell", lambda user: h.login_shells.get(user))
    return h


@pytest.fixture
def ctx(cfg: ProvisionConfig, host: FakeHost) -> Context:
    return Context(cfg=cfg, cmd=host.runner)
