from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

APP_NAME = "fedora-provisioner"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class PackageSet:
    manager: str
    names: Tuple[str, ...]

    def __iter__(self):
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)


@dataclass(frozen=True)
class Addon:
    """A shell-framework plugin or theme fetched with git."""

    name: str
    url: str
    subdir: str
    shallow: bool = False


SYSTEM_PACKAGES = (
    "curl",
    "wget",
    "neovim",
    "zsh",
    "tmux",
    "btop",
    "stow",
    "fzf",
    "ripgrep",
    "fastfetch",
    "foot",
    "code",
    "bat",
)

FLATPAK_APPS = (
    "com.discordapp.Discord",
    "com.usebruno.Bruno",
    "md.obsidian.Obsidian",
)

DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)

SHELL_ADDONS = (
    Addon(
        name="zsh-autosuggestions",
        url="https://github.com/zsh-users/zsh-autosuggestions",
        subdir="plugins/zsh-autosuggestions",
    ),
    Addon(
        name="zsh-syntax-highlighting",
        url="https://github.com/zsh-users/zsh-syntax-highlighting.git",
        subdir="plugins/zsh-syntax-highlighting",
    ),
    Addon(
        name="powerlevel10k",
        url="https://github.com/romkatv/powerlevel10k.git",
        subdir="themes/powerlevel10k",
        shallow=True,
    ),
)

# Paths relative to $HOME that stow is expected to touch.
DOTFILE_TARGETS = (
    ".zshrc",
    ".bashrc",
    ".p10k.zsh",
    ".tmux.conf",
    ".config/foot",
    ".config/nvim",
    ".config/yazi",
)


@dataclass(frozen=True)
class ProvisionConfig:
    home: Path
    user: str
    config_home: Path
    data_home: Path
    zsh_dir: Path
    zsh_custom: Path
    dotfiles_dir: Path

    dotfile_targets: Tuple[str, ...] = DOTFILE_TARGETS

    system_packages: PackageSet = PackageSet("dnf", SYSTEM_PACKAGES)
    flatpak_apps: PackageSet = PackageSet("flatpak", FLATPAK_APPS)
    docker_packages: PackageSet = PackageSet("dnf", DOCKER_PACKAGES)

    vscode_repo_key: str = "https://packages.microsoft.com/keys/microsoft.asc"
    vscode_repo_baseurl: str = "https://packages.microsoft.com/yumrepos/vscode"
    docker_repo_url: str = "https://download.docker.com/linux/fedora/docker-ce.repo"
    flathub_remote: str = "flathub"
    flathub_url: str = "https://dl.flathub.org/repo/flathub.flatpakrepo"

    shell_installer_url: str = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
    shell_addons: Tuple[Addon, ...] = SHELL_ADDONS
    target_shell: str = "zsh"

    font_url: str = "https://github.com/ryanoasis/nerd-fonts/releases/download/v3.0.2/JetBrainsMono.zip"
    font_family: str = "JetBrainsMono Nerd Font"
    font_dir_name: str = "JetBrainsMono"
    font_skip_if_present: bool = False

    abort_on_missing_prerequisites: bool = True
    fail_on_step_failure: bool = False
    preflight_tools: Tuple[str, ...] = ("dnf",)

    network_timeout_s: float = 300.0

    repos_dir: Path = Path("/etc/yum.repos.d")
    shells_file: Path = Path("/etc/shells")

    source_path: Optional[Path] = field(default=None, compare=False)

    @property
    def state_dir(self) -> Path:
        return self.data_home / APP_NAME

    @property
    def font_dir(self) -> Path:
        return self.data_home / "fonts" / self.font_dir_name

    @property
    def default_log_path(self) -> Path:
        return self.state_dir / "provision.log"

    @property
    def default_report_path(self) -> Path:
        return self.state_dir / "last-run.json"


def _env_path(env: Mapping[str, str], key: str, default: Path) -> Path:
    value = (env.get(key) or "").strip()
    return Path(value).expanduser() if value else default


def from_environment(env: Optional[Mapping[str, str]] = None, *, cwd: Optional[Path] = None) -> ProvisionConfig:
    """Populate the configuration from environment variables and their fallbacks."""

    env = os.environ if env is None else env
    home = _env_path(env, "HOME", Path.home())
    zsh_dir = _env_path(env, "ZSH", home / ".oh-my-zsh")
    return ProvisionConfig(
        home=home,
        user=(env.get("USER") or env.get("LOGNAME") or home.name),
        config_home=_env_path(env, "XDG_CONFIG_HOME", home / ".config"),
        data_home=_env_path(env, "XDG_DATA_HOME", home / ".local" / "share"),
        zsh_dir=zsh_dir,
        zsh_custom=_env_path(env, "ZSH_CUSTOM", zsh_dir / "custom"),
        dotfiles_dir=(cwd or Path.cwd()),
    )


def default_config_path(cfg: ProvisionConfig) -> Path:
    return cfg.config_home / APP_NAME / "config.yaml"


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return value


def _str_list(value: Any, where: str) -> Tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigError(f"{where} must be a list of strings")
    out = tuple(str(v).strip() for v in value if str(v).strip())
    return out


def _addons(value: Any) -> Tuple[Addon, ...]:
    if not isinstance(value, list):
        raise ConfigError("shell.addons must be a list")
    out: list[Addon] = []
    for item in value:
        if not isinstance(item, dict) or not item.get("url") or not item.get("subdir"):
            raise ConfigError("each shell addon needs 'url' and 'subdir'")
        out.append(
            Addon(
                name=str(item.get("name") or Path(str(item["subdir"])).name),
                url=str(item["url"]),
                subdir=str(item["subdir"]),
                shallow=bool(item.get("shallow", False)),
            )
        )
    return tuple(out)


def _apply_raw(cfg: ProvisionConfig, raw: Dict[str, Any]) -> ProvisionConfig:
    changes: Dict[str, Any] = {}

    packages = _section(raw, "packages")
    if "system" in packages:
        changes["system_packages"] = PackageSet("dnf", _str_list(packages["system"], "packages.system"))
    if "flatpak" in packages:
        changes["flatpak_apps"] = PackageSet("flatpak", _str_list(packages["flatpak"], "packages.flatpak"))
    if "docker" in packages:
        changes["docker_packages"] = PackageSet("dnf", _str_list(packages["docker"], "packages.docker"))

    dotfiles = _section(raw, "dotfiles")
    if dotfiles.get("source"):
        changes["dotfiles_dir"] = Path(str(dotfiles["source"])).expanduser()
    if "targets" in dotfiles:
        changes["dotfile_targets"] = _str_list(dotfiles["targets"], "dotfiles.targets")

    fonts = _section(raw, "fonts")
    for key, attr in (("url", "font_url"), ("family", "font_family"), ("dir_name", "font_dir_name")):
        if fonts.get(key):
            changes[attr] = str(fonts[key])
    if "skip_if_present" in fonts:
        changes["font_skip_if_present"] = bool(fonts["skip_if_present"])

    shell = _section(raw, "shell")
    if shell.get("framework_installer_url"):
        changes["shell_installer_url"] = str(shell["framework_installer_url"])
    if "addons" in shell:
        changes["shell_addons"] = _addons(shell["addons"])
    if shell.get("target"):
        changes["target_shell"] = str(shell["target"])

    policy = _section(raw, "policy")
    if "abort_on_missing_prerequisites" in policy:
        changes["abort_on_missing_prerequisites"] = bool(policy["abort_on_missing_prerequisites"])
    if "fail_on_step_failure" in policy:
        changes["fail_on_step_failure"] = bool(policy["fail_on_step_failure"])
    if "preflight_tools" in policy:
        changes["preflight_tools"] = _str_list(policy["preflight_tools"], "policy.preflight_tools")

    network = _section(raw, "network")
    if "timeout_s" in network:
        try:
            changes["network_timeout_s"] = float(network["timeout_s"])
        except (TypeError, ValueError) as e:
            raise ConfigError("network.timeout_s must be a number") from e

    paths = _section(raw, "paths")
    if paths.get("repos_dir"):
        changes["repos_dir"] = Path(str(paths["repos_dir"]))
    if paths.get("shells_file"):
        changes["shells_file"] = Path(str(paths["shells_file"]))

    return replace(cfg, **changes)


def load_config(
    env: Optional[Mapping[str, str]] = None,
    path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    cwd: Optional[Path] = None,
) -> ProvisionConfig:
    """Build the run configuration once: defaults, environment, YAML file, then overrides.

    An explicitly given ``path`` must exist; the default location is optional.
    """

    cfg = from_environment(env, cwd=cwd)

    explicit = path is not None
    p = Path(path).expanduser() if explicit else default_config_path(cfg)
    if p.exists():
        if p.suffix.lower() not in {".yaml", ".yml"}:
            raise ConfigError(f"config must be YAML: {p}")
        try:
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {p}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{p} must contain a mapping/object")
        cfg = replace(_apply_raw(cfg, raw), source_path=p)
    elif explicit:
        raise ConfigError(f"config file not found: {p}")

    if overrides:
        known = {f.name for f in fields(ProvisionConfig)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"unknown config override(s): {', '.join(unknown)}")
        cfg = replace(cfg, **{k: v for k, v in overrides.items() if v is not None})

    return cfg
