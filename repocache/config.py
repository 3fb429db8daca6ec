"""Configuration for the git cache: identity, retry policy and cache location"""

import configparser
import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)

APP_NAME = "repocache"

_home = os.path.expanduser("~")

xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(_home, ".config")


default_cfg = {
    "git": {
        "username": "",
        "email": "",
        "retries": "3",
        "retry_interval": "1",
        "timeout": "",
    },
    "dirs": {"git_cache": ""},
}

if platform.system() == "Darwin":
    # macOS
    config_dir = Path("~/Library/Application Support/repocache").expanduser()
else:
    # Linux or others
    config_dir = Path(os.path.join(xdg_config_home, APP_NAME))


def get_config_file():
    return config_dir / f"{APP_NAME}.cfg"


def init_dirs():
    """Initialize the configuration directory.

    Fails gracefully if it cannot be created (e.g., read-only filesystem).
    """
    try:
        os.makedirs(config_dir, exist_ok=True)
    except OSError as e:
        logger.warning(
            f"Could not create config directory {config_dir}: {e}. "
            "Using in-memory configuration only."
        )


class ConfigAccessor:
    """
    A dict-like accessor for configuration files.

    Missing sections or keys fall back to the given default.

    Usage:
        config = ConfigAccessor()
        value = config.get('git', 'username', default='')
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize a ConfigAccessor with an optional config file path.

        Args:
            config_path: Path to the configuration file. If None, uses the default path.
        """
        if config_path is None:
            self.config_path = get_config_file()
            init_dirs()
        else:
            self.config_path = Path(config_path)

        self.config = configparser.ConfigParser()
        if self.config_path.exists():
            self.config.read(self.config_path)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a configuration value from the specified section and key.

        Args:
            section: The configuration section
            key: The configuration key
            default: Value to return if the section or key doesn't exist

        Returns:
            The configuration value if it exists, otherwise the default value
        """
        try:
            return self.config[section][key]
        except (KeyError, configparser.NoSectionError, configparser.NoOptionError):
            return default

    def getint(self, section: str, key: str, default: int) -> int:
        value = self.get(section, key)
        if value is None or value.strip() == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for [{section}] {key}: {value!r}")

    def getfloat(self, section: str, key: str, default: Optional[float]) -> Optional[float]:
        value = self.get(section, key)
        if value is None or value.strip() == "":
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid number for [{section}] {key}: {value!r}")

    def set(self, section: str, key: str, value: str) -> None:
        if not self.config.has_section(section):
            self.config.add_section(section)

        self.config[section][key] = value

    def save(self) -> None:
        """
        Save the current configuration to the config file.

        Fails gracefully if the file cannot be written (e.g., read-only filesystem).
        """
        try:
            with open(self.config_path, "w") as configfile:
                self.config.write(configfile)
        except (OSError, IOError) as e:
            logger.warning(
                f"Could not save configuration to {self.config_path}: {e}. "
                "Configuration changes will not persist."
            )

    def sections(self) -> list:
        return self.config.sections()

    def options(self, section: str) -> list:
        try:
            return self.config.options(section)
        except configparser.NoSectionError:
            return []


# Create a global config accessor instance
config = ConfigAccessor()


def get_git_identity(cfg: Optional[ConfigAccessor] = None) -> Tuple[str, str]:
    """
    Get the commit identity applied to every working copy.

    Returns:
        (username, email); empty strings mean "don't configure"
    """
    cfg = cfg or config
    username = cfg.get("git", "username", default_cfg["git"]["username"])
    email = cfg.get("git", "email", default_cfg["git"]["email"])
    return username.strip(), email.strip()


def get_retry_policy(cfg: Optional[ConfigAccessor] = None) -> Tuple[int, float]:
    """
    Get the number of attempts and the fixed delay for network commands.

    Returns:
        (retries, retry_interval in seconds)
    """
    cfg = cfg or config
    retries = cfg.getint("git", "retries", int(default_cfg["git"]["retries"]))
    interval = cfg.getfloat(
        "git", "retry_interval", float(default_cfg["git"]["retry_interval"])
    )
    if retries < 1:
        raise ValueError(f"Invalid value for [git] retries: {retries}, must be >= 1")
    if interval < 0:
        raise ValueError(f"Invalid value for [git] retry_interval: {interval}")
    return retries, interval


def get_command_timeout(cfg: Optional[ConfigAccessor] = None) -> Optional[float]:
    """Get the overall timeout for one cache operation, None when unset."""
    cfg = cfg or config
    return cfg.getfloat("git", "timeout", None)


def get_git_cache_parent(cfg: Optional[ConfigAccessor] = None) -> Optional[Path]:
    """
    Get the directory the temporary cache root is created in.

    Returns:
        Configured directory (created if missing), or None for the system temp dir
    """
    cfg = cfg or config
    value = cfg.get("dirs", "git_cache", default_cfg["dirs"]["git_cache"])
    if not value or not value.strip():
        return None
    git_cache_dir = Path(value.strip()).expanduser()
    git_cache_dir.mkdir(parents=True, exist_ok=True)
    return git_cache_dir
