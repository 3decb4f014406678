"""Configuration loading utilities for release-deployer."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .paths import DEFAULT_CONFIG_PATH

# Load .env file if it exists
load_dotenv()

DEFAULT_KEEP_RELEASES = 5

DEFAULT_INSTALL_COMMAND = (
    "bash -c '. ~/.nvm/nvm.sh && nvm use {runtime_version} "
    "&& npm install --prefix {release_dir}'"
)
DEFAULT_RESTART_COMMAND = "sudo systemctl restart {application}.service"


class DeployVia(str, Enum):
    """Strategy used to materialize source code into a release."""

    GIT = "git"
    COPY = "copy"
    TARBALL_SYNC = "tarball"
    REMOTE_CACHE = "remote_cache"

    @classmethod
    def parse(cls, value: str) -> "DeployVia":
        key = (value or "").strip()
        normalized = _DEPLOY_VIA_ALIASES.get(key, key.lower())
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unsupported deploy method: {value!r}. Supported methods: {supported}"
            ) from None


_DEPLOY_VIA_ALIASES = {
    "remoteSync": "tarball",
    "rsync": "tarball",
    "tarball_sync": "tarball",
    "remoteCache": "remote_cache",
}


@dataclass
class ConnectionConfig:
    """How to reach the target host."""

    host: Optional[str] = None
    port: int = 22
    username: Optional[str] = None
    auth_method: str = "agent"  # "agent" | "key" | "password"
    password: Optional[str] = None
    key_path: Optional[str] = None
    passphrase: Optional[str] = None
    agent_forward: bool = True
    timeout: int = 20

    @property
    def label(self) -> str:
        return f"{self.username}@{self.host}"


@dataclass
class RepositoryConfig:
    """Where the application source comes from."""

    repo_url: Optional[str] = None
    branch: str = "main"
    local_source: str = "."  # 仅 copy 策略使用


@dataclass
class CommandsConfig:
    """Shell command templates for the build and service steps.

    Templates are formatted with ``application``, ``release_dir``,
    ``project_folder``, ``runtime_version`` and ``branch``. Unset optional
    commands turn their step into a logged no-op.
    """

    install: Optional[str] = DEFAULT_INSTALL_COMMAND
    restart: Optional[str] = DEFAULT_RESTART_COMMAND
    precompile: Optional[str] = None
    backup_manifest: Optional[str] = None
    migrate: Optional[str] = None


@dataclass
class DeployConfig:
    """Top-level configuration: one application on one target host."""

    application: str = ""
    project_folder: str = ""
    deploy_via: str = "git"
    runtime_version: str = ""
    keep_releases: int = DEFAULT_KEEP_RELEASES
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    commands: CommandsConfig = field(default_factory=CommandsConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DeployConfig":
        payload = _strip_comments(payload or {})
        connection_payload = _strip_comments(payload.pop("connection", {}) or {})
        repository_payload = _strip_comments(payload.pop("repository", {}) or {})
        commands_payload = _strip_comments(payload.pop("commands", {}) or {})

        known = set(cls.__dataclass_fields__) - {"connection", "repository", "commands"}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        try:
            return cls(
                **payload,
                connection=ConnectionConfig(**connection_payload),
                repository=RepositoryConfig(**repository_payload),
                commands=CommandsConfig(**commands_payload),
            )
        except TypeError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def strategy(self) -> DeployVia:
        return DeployVia.parse(self.deploy_via)

    def template_fields(self, release_dir: str) -> Dict[str, str]:
        return {
            "application": self.application,
            "release_dir": release_dir,
            "project_folder": self.project_folder,
            "runtime_version": self.runtime_version,
            "branch": self.repository.branch,
        }

    def render_command(self, template: str, release_dir: str) -> str:
        """Fill a command template; unknown placeholders are configuration errors."""
        try:
            return template.format(**self.template_fields(release_dir))
        except (KeyError, IndexError, ValueError) as exc:
            raise ConfigurationError(f"Invalid command template {template!r}: {exc}") from exc

    def validate(self, *, require_connection: bool = True) -> None:
        """Raise ConfigurationError when the configuration cannot be deployed.

        ``require_connection`` is False for local deployments, which never
        open an SSH connection.
        """
        missing = []
        if not self.application:
            missing.append("application")
        if not self.project_folder:
            missing.append("project_folder")
        if require_connection and not self.connection.host:
            missing.append("connection.host")
        if require_connection and not self.connection.username:
            missing.append("connection.username")

        from .strategies import resolve_strategy

        strategy = resolve_strategy(self).deploy_via
        if strategy in (DeployVia.GIT, DeployVia.TARBALL_SYNC) and not self.repository.repo_url:
            missing.append("repository.repo_url")
        if missing:
            raise ConfigurationError(
                "Missing required configuration values: " + ", ".join(missing)
            )

        if isinstance(self.keep_releases, bool) or not isinstance(self.keep_releases, int):
            raise ConfigurationError("keep_releases must be an integer")
        if self.keep_releases < 0:
            raise ConfigurationError("keep_releases must not be negative")

        if require_connection:
            self._validate_auth()

        for template in asdict(self.commands).values():
            if template is not None:
                self.render_command(template, self.project_folder)

    def _validate_auth(self) -> None:
        auth_method = self.connection.auth_method
        if auth_method not in ("agent", "key", "password"):
            raise ConfigurationError(f"Unsupported SSH auth method: {auth_method}")
        if auth_method == "password" and not self.connection.password:
            raise ConfigurationError("Password authentication selected but no password provided")
        if auth_method == "key" and not self.connection.key_path:
            raise ConfigurationError("Key authentication selected but no key_path provided")


def _strip_comments(payload: Dict[str, Any]) -> Dict[str, Any]:
    # 过滤掉以下划线开头的注释字段
    return {k: v for k, v in payload.items() if not k.startswith("_")}


def load_config(path: Optional[str] = None) -> DeployConfig:
    """Load configuration from `path` or the default location.

    Environment variables (higher priority than config file):
    - RELEASE_DEPLOYER_SSH_HOST: Target host
    - RELEASE_DEPLOYER_SSH_PORT: SSH port
    - RELEASE_DEPLOYER_SSH_USERNAME: SSH username
    - RELEASE_DEPLOYER_SSH_PASSWORD: SSH password (switches to password auth)
    - RELEASE_DEPLOYER_SSH_KEY_PATH: Path to SSH private key (switches to key auth)
    - RELEASE_DEPLOYER_BRANCH: Branch to deploy
    """

    candidate = Path(path) if path else DEFAULT_CONFIG_PATH
    if not candidate.is_file():
        raise ConfigurationError(
            f"Could not find configuration file: {candidate}. Run `release-deployer setup` first."
        )

    with candidate.open("r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in {candidate}: {exc}") from exc
    config = DeployConfig.from_dict(data)

    env_host = os.getenv("RELEASE_DEPLOYER_SSH_HOST")
    if env_host:
        config.connection.host = env_host

    env_port = os.getenv("RELEASE_DEPLOYER_SSH_PORT")
    if env_port:
        try:
            config.connection.port = int(env_port)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid RELEASE_DEPLOYER_SSH_PORT: {env_port}") from exc

    env_username = os.getenv("RELEASE_DEPLOYER_SSH_USERNAME")
    if env_username:
        config.connection.username = env_username

    env_password = os.getenv("RELEASE_DEPLOYER_SSH_PASSWORD")
    if env_password:
        config.connection.password = env_password
        config.connection.auth_method = "password"

    env_key_path = os.getenv("RELEASE_DEPLOYER_SSH_KEY_PATH")
    if env_key_path:
        config.connection.key_path = env_key_path
        config.connection.auth_method = "key"

    env_branch = os.getenv("RELEASE_DEPLOYER_BRANCH")
    if env_branch:
        config.repository.branch = env_branch

    return config


CONFIG_TEMPLATE: Dict[str, Any] = {
    "_comment": "release-deployer configuration. Keys starting with '_' are ignored.",
    "application": "application_name",
    "deploy_via": "git",
    "_deploy_via": "git | copy | tarball | remote_cache (not implemented yet)",
    "project_folder": "/home/deploy/apps/application_name",
    "runtime_version": "22.11.0",
    "keep_releases": DEFAULT_KEEP_RELEASES,
    "connection": {
        "host": "203.0.113.10",
        "port": 22,
        "username": "deploy",
        "auth_method": "agent",
        "agent_forward": True,
    },
    "repository": {
        "repo_url": "git@github.com:username/repository.git",
        "branch": "main",
    },
    "commands": {
        "install": DEFAULT_INSTALL_COMMAND,
        "restart": DEFAULT_RESTART_COMMAND,
        "precompile": None,
        "backup_manifest": None,
        "migrate": None,
    },
}


def write_config_template(path: Optional[str] = None) -> Optional[Path]:
    """Write the configuration template; return None when the file exists."""
    target = Path(path) if path else DEFAULT_CONFIG_PATH
    if target.exists():
        return None
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(CONFIG_TEMPLATE, indent=2) + "\n", encoding="utf-8")
    return target
