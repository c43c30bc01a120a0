import dataclasses
import json
import os
import pathlib
import typing

from .logging import getLogger

logger = getLogger(__name__)

HOME_ENV_VAR = "MBAREWRITE_HOME"


def _get_default_user_dir() -> pathlib.Path:
    """Return the per-user directory holding options and logs.

    ``$MBAREWRITE_HOME`` wins when set, otherwise ``~/.mbarewrite``.
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return pathlib.Path(override)
    return pathlib.Path.home() / ".mbarewrite"


@dataclasses.dataclass(frozen=True, slots=True)
class ConfigConstants:
    OPTIONS_FILENAME: typing.ClassVar[str] = "options.json"

    @staticmethod
    def default_log_dir(user_dir: pathlib.Path | None = None) -> pathlib.Path:
        """Return the default log directory based on the user dir."""
        base = user_dir if user_dir is not None else _get_default_user_dir()
        return base / "logs"


@dataclasses.dataclass(frozen=True, slots=True)
class ObfuscationDefaults:
    """
    Default values for an obfuscation request, used by the command line
    front end for every option the user leaves out.

    >>> d = ObfuscationDefaults.from_dict({"width": 16, "rewrite_count": 8})
    >>> d.width, d.rewrite_count, d.rewrite_depth
    (16, 8, 3)
    >>> ObfuscationDefaults().to_dict()["printer"]
    'c'
    """

    width: int = 8
    rewrite_count: int = 24
    rewrite_depth: int = 3
    randomize: bool = True
    printer: str = "c"
    aux_vars: int = 0
    max_tries: int = 128

    def to_dict(self) -> dict[str, typing.Any]:
        """Serializes the defaults to a dictionary."""
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, typing.Any]) -> "ObfuscationDefaults":
        """Creates defaults from a dictionary, ignoring unknown keys."""
        names = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - names
        if unknown:
            logger.warning("Ignoring unknown obfuscation options: %s", sorted(unknown))
        return cls(**{k: v for k, v in data.items() if k in names})


class MBAConfiguration:
    """
    Manages application-wide configuration from a JSON file, offering
    dictionary-like access.

    >>> import tempfile
    >>> temp_dir = tempfile.TemporaryDirectory()
    >>> config_path = pathlib.Path(temp_dir.name) / "options.json"
    >>> config_path.write_text('{"obfuscation": {"width": 32}}')
    30
    >>> config = MBAConfiguration(config_path)
    >>> config.obfuscation_defaults().width
    32
    >>> config["log_dir"] = "/new/logs"
    >>> str(config.log_dir)
    '/new/logs'
    >>> temp_dir.cleanup()
    """

    def __init__(
        self,
        config_path: pathlib.Path | str | None = None,
        *,
        user_dir: pathlib.Path | str | None = None,
    ):
        """
        Initializes and loads the configuration.

        Args:
            config_path: Path to the JSON config file. If None, defaults to
                         'options.json' in the user directory, falling back to
                         the template shipped with the package for reading.
            user_dir: Directory for user options and logs. If None, uses
                      $MBAREWRITE_HOME or ~/.mbarewrite.
        """
        self._user_dir = (
            pathlib.Path(user_dir) if user_dir is not None else _get_default_user_dir()
        )

        if config_path is not None:
            # Caller explicitly provided a path - honor it verbatim.
            self.config_file = pathlib.Path(config_path)
            template_path: pathlib.Path | None = None
        else:
            self.config_file = self._user_dir / ConfigConstants.OPTIONS_FILENAME
            template_path = (
                pathlib.Path(__file__).resolve().parent
                / ConfigConstants.OPTIONS_FILENAME
            )

        self._options: dict[str, typing.Any] = {}

        # When a template exists and the user file is absent, read from the template
        # but keep ``self.config_file`` pointing to the user path so that any save()
        # writes a copy in the writable directory.
        self._load(fallback_path=template_path)

    def _load(self, fallback_path: pathlib.Path | None = None) -> None:
        """Loads configuration from the JSON file, handling potential errors."""
        paths_to_try = [self.config_file]
        if fallback_path is not None and fallback_path not in paths_to_try:
            paths_to_try.append(fallback_path)

        for path in paths_to_try:
            try:
                with path.open("r", encoding="utf-8") as fp:
                    self._options = json.load(fp)
                logger.info("Loaded configuration from %s", path)
                break
            except FileNotFoundError:
                logger.debug("Configuration file %s not found", path)
            except json.JSONDecodeError:
                logger.error("Failed to parse config file: %s", path)

        else:
            # None of the candidate files succeeded.
            logger.warning("No valid configuration found; using defaults in memory.")
            self._options = {}

    def save(self) -> None:
        """Saves the current configuration to the JSON file."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with self.config_file.open("w", encoding="utf-8") as fp:
                json.dump(self._options, fp, indent=2)
            logger.info("Configuration saved to %s", self.config_file)
        except OSError as e:
            logger.error("Failed to save configuration to %s: %s", self.config_file, e)

    def obfuscation_defaults(self) -> ObfuscationDefaults:
        """Return the request defaults stored under the ``obfuscation`` key."""
        return ObfuscationDefaults.from_dict(self._options.get("obfuscation", {}))

    @property
    def user_dir(self) -> pathlib.Path:
        return self._user_dir

    @property
    def log_dir(self) -> pathlib.Path:
        """Returns the configured log directory, or dynamically computes default if not set."""
        path_str = self._options.get("log_dir")
        if not path_str:
            path_str = str(ConfigConstants.default_log_dir(self._user_dir))
            self._options["log_dir"] = path_str
        return pathlib.Path(path_str)

    def __getitem__(self, name: str) -> typing.Any:
        """Provides dictionary-style read access."""
        return self._options[name]

    def __setitem__(self, name: str, value: typing.Any) -> None:
        """Provides dictionary-style write access."""
        self._options[name] = value

    def get(self, name: str, default: typing.Any = None) -> typing.Any:
        """Provides dictionary-style read access with a default value."""
        return self._options.get(name, default)

    def set(self, name: str, value: typing.Any) -> None:
        """Provides dictionary-style write access."""
        self._options[name] = value
