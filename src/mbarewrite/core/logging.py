import collections
import dataclasses
import functools
import logging
import logging.config
import pathlib
import threading
import typing

LOG_FILENAME = "mbarewrite.log"

# Bumped whenever levels change so that LevelFlag caches refresh
_config = collections.Counter(version=0)


@dataclasses.dataclass(slots=True)
class LevelFlag:
    """
    Cached answer to ``logger.isEnabledFor(level)``.

    The elimination loops of the congruence solver log every row and column
    operation at DEBUG. Asking the logging module on each step is measurable
    at 128 bits, so the answer is cached until the configuration version
    changes.

    Example:
        if logger.debug_on:
            logger.debug("Pivot %d at (%d, %d)", pivot, row, col)
    """

    _logger_name: str
    _level: int
    _last_version: int = dataclasses.field(default=-1, init=False)
    _cached: bool = dataclasses.field(default=False, init=False)

    def __bool__(self) -> bool:
        current = _config["version"]
        if self._last_version != current:
            self._cached = getLogger(self._logger_name).isEnabledFor(self._level)
            self._last_version = current
        return self._cached

    def __repr__(self):
        return f"<LevelFlag {self._logger_name}≥{logging.getLevelName(self._level)}>"

    @staticmethod
    def bump_config_version() -> None:
        _config["version"] += 1


class MBALogger(logging.Logger):
    """Logger whose records carry the request id and width of the current thread."""

    _mdc_local: "threading.local" = threading.local()

    @classmethod
    def mdc(cls) -> typing.Mapping[str, typing.Any]:
        if not getattr(cls._mdc_local, "mdc", None):
            cls._mdc_local.mdc = {"request": "", "width": ""}
        return cls._mdc_local.mdc

    @classmethod
    def get_mdc(cls, key: str, default: typing.Any | None = None):
        return cls.mdc().get(key, default)

    @classmethod
    def update_request(cls, request: str, width: int | str = "") -> None:
        """Tag every following record of this thread with ``request`` and ``width``."""
        cls._mdc_local.mdc = {**cls.mdc(), "request": request, "width": width}

    @classmethod
    def reset_request(cls) -> None:
        cls._mdc_local.mdc = {
            k: v for k, v in cls.mdc().items() if k not in ("request", "width")
        }

    @functools.cached_property
    def debug_on(self) -> LevelFlag:  # noqa: D401
        """Fast flag: is DEBUG enabled for this logger?"""
        return LevelFlag(self.name, logging.DEBUG)

    def makeRecord(
        self,
        name,
        level,
        fn,
        lno,
        msg,
        args,
        exc_info,
        func=None,
        extra: dict[str, typing.Any] | None = None,
        sinfo=None,
    ):
        extra = {**(extra or {}), **self.mdc()}
        return super().makeRecord(
            name, level, fn, lno, msg, args, exc_info, func=func, extra=extra, sinfo=sinfo
        )


class MBAFormatter(logging.Formatter):
    """Adds a ``%(context)s`` field rendered as `` - <request>/w<width>``."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        parts = []
        request = getattr(record, "request", "")
        width = getattr(record, "width", "")
        if request:
            parts.append(str(request))
        if width:
            parts.append(f"w{width}")
        record.context = f" - {'/'.join(parts)}" if parts else ""
        return super().format(record)


# The file handler's filename is filled in by configure_loggers
conf: dict[str, typing.Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "MBAFormatter": {
            "()": MBAFormatter,
            "format": "%(asctime)s - %(name)s - %(levelname)s%(context)s - %(message)s",
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "WARNING",
            "formatter": "MBAFormatter",
            "stream": "ext://sys.stderr",
        },
        "defaultFileHandler": {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "MBAFormatter",
            "filename": None,
        },
    },
    "loggers": {
        "mbarewrite": {
            "level": "INFO",
            "handlers": ["consoleHandler", "defaultFileHandler"],
            "propagate": False,
        },
        # Solver steps are too chatty for the console
        "mbarewrite.mba.congruence": {
            "level": "INFO",
            "handlers": ["defaultFileHandler"],
            "propagate": False,
        },
        "mbarewrite.mba.engine": {
            "level": "INFO",
            "handlers": ["consoleHandler", "defaultFileHandler"],
            "propagate": False,
        },
        "mbarewrite.cli": {
            "level": "INFO",
            "handlers": ["consoleHandler", "defaultFileHandler"],
            "propagate": False,
        },
    },
    "root": {
        "level": "WARNING",
        "handlers": ["consoleHandler"],
    },
}


class LoggerConfigurator:
    """List the project's loggers and change their levels at run time."""

    @staticmethod
    def available_loggers(
        prefix: str | typing.Iterable[str] | None = None,
        case_insensitive: bool = False,
    ) -> list[str]:
        """
        Sorted names of every created or statically configured logger.

        With ``prefix`` (one string or several), only names equal to a prefix
        or below it in the dotted hierarchy are returned.
        """
        names = {
            name
            for name, logger in logging.Logger.manager.loggerDict.items()
            if isinstance(logger, logging.Logger)
        }
        names.update(conf["loggers"])
        if prefix is None:
            return sorted(names)

        prefixes = [prefix] if isinstance(prefix, str) else list(prefix)
        fold = str.lower if case_insensitive else str
        prefixes = [fold(p) for p in prefixes]

        def match(name: str) -> bool:
            name = fold(name)
            return any(name == p or name.startswith(p + ".") for p in prefixes)

        return sorted(filter(match, names))

    @staticmethod
    def get_level(name: str) -> int:
        return getLogger(name).getEffectiveLevel()

    @staticmethod
    def set_level(logger_name: str, level_name: str) -> None:
        """
        Set ``logger_name`` to DEBUG, INFO, WARNING, ERROR or CRITICAL.

        Raises:
            ValueError: For any other level name.
        """
        lvl = getattr(logging, level_name.upper(), None)
        if not isinstance(lvl, int):
            raise ValueError(f"Unknown logging level: {level_name}")
        getLogger(logger_name, lvl).setLevel(lvl)
        LevelFlag.bump_config_version()


def configure_loggers(log_dir: str | pathlib.Path) -> None:
    """Apply :data:`conf`, writing the log file into ``log_dir``."""
    log_dir = pathlib.Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    conf["handlers"]["defaultFileHandler"]["filename"] = (log_dir / LOG_FILENAME).as_posix()
    logging.config.dictConfig(conf)
    LevelFlag.bump_config_version()


def getLogger(name: str, default_level: int = logging.INFO) -> MBALogger:
    """Return the :class:`MBALogger` called ``name``.

    A plain logger already registered under ``name`` (e.g. one created by
    ``dictConfig``) is replaced by an :class:`MBALogger` that keeps its
    handlers, filters and parent. If the replacement would have neither
    handlers nor propagation, propagation is switched back on so records are
    not lost.
    """
    name = name or __name__
    base = logging.getLogger(name)
    if isinstance(base, MBALogger):
        return base

    level = base.level
    if level == logging.NOTSET or level < default_level:
        level = default_level
    new = MBALogger(base.name, level=level)
    new.handlers = list(base.handlers)
    new.filters = list(base.filters)
    new.propagate = base.propagate or not new.handlers
    new.disabled = base.disabled
    new.parent = base.parent
    logging.Logger.manager.loggerDict[name] = new
    return new
