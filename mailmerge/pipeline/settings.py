"""Runtime settings loaded from the environment and an optional ``.env`` file.

Examples
--------
>>> import os
>>> os.environ["MAILMERGE_POLICY"] = "lenient"
>>> MergeSettings().policy.value
'lenient'
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

import mailmerge.config as _project_config
from mailmerge.config import (
    DEFAULT_LOG_LEVEL,
    ENV_CSV_ENCODING,
    ENV_DISABLE_FILE_LOGS,
    ENV_LOG_LEVEL,
    ENV_POLICY,
)
from mailmerge.exceptions import ConfigurationError
from mailmerge.pipeline.join import ErrorPolicy

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class MergeSettings:
    """Validated runtime configuration for a merge run.

    Attributes
    ----------
    log_level : str
        One of the standard logging level names.
    policy : ErrorPolicy
        Default join policy for ``validate`` runs.
    csv_encoding : str | None
        Encoding applied to CSV sources that do not set their own.
    file_logs : bool
        False when ``DISABLE_FILE_LOGS`` is set.

    Raises
    ------
    ConfigurationError
        If a variable holds an unsupported value.
    """

    def __init__(self) -> None:
        # Read PROJECT_ROOT through the module so tests can monkeypatch it.
        env_path = Path(_project_config.PROJECT_ROOT) / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=True)

        self.log_level: str = os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).strip().upper()
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(
                f"{ENV_LOG_LEVEL} must be one of {', '.join(_LOG_LEVELS)}",
                context={"value": self.log_level},
            )

        raw_policy = os.getenv(ENV_POLICY, ErrorPolicy.STRICT.value).strip().lower()
        try:
            self.policy: ErrorPolicy = ErrorPolicy(raw_policy)
        except ValueError as exc:
            raise ConfigurationError(
                f"{ENV_POLICY} must be 'strict' or 'lenient'",
                context={"value": raw_policy},
            ) from exc

        self.csv_encoding: str | None = os.getenv(ENV_CSV_ENCODING) or None
        self.file_logs: bool = not os.getenv(ENV_DISABLE_FILE_LOGS)

    def __repr__(self) -> str:
        return (
            f"MergeSettings(log_level={self.log_level!r}, policy={self.policy.value!r}, "
            f"csv_encoding={self.csv_encoding!r}, file_logs={self.file_logs})"
        )
