from .step_10_vscode_repo import VSCodeRepoStep
from .step_15_refresh_metadata import RefreshMetadataStep
from .step_20_system_packages import DnfPackagesStep
from .step_30_flatpak_apps import FlatpakAppsStep
from .step_40_docker_repo import DockerRepoStep
from .step_45_docker_packages import DockerPackagesStep
from .step_50_docker_service import DockerServiceStep
from .step_60_shell_environment import ShellEnvironmentStep
from .step_70_fonts import InstallFontsStep
from .step_80_dotfiles import LinkDotfilesStep
from .step_90_cleanup import CleanupStep

__all__ = [
    "VSCodeRepoStep",
    "RefreshMetadataStep",
    "DnfPackagesStep",
    "FlatpakAppsStep",
    "DockerRepoStep",
    "DockerPackagesStep",
    "DockerServiceStep",
    "ShellEnvironmentStep",
    "InstallFontsStep",
    "LinkDotfilesStep",
    "CleanupStep",
]
