import logging
import os

from pydantic import BaseModel, Field

LOG_FORMAT = '%(asctime)s:%(name)s:%(levelname)s:%(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ClientConfig(BaseModel):
    """Connection settings shared by providers.

    ``base_url`` falls back to the provider's own endpoint when unset.
    ``request_timeout`` bounds each connect/read; ``stream_timeout``
    bounds a whole streamed response.

    Example:
        config = ClientConfig.from_env(app_title="My App")
    """

    api_key: str | None = Field(default=None, repr=False)
    base_url: str | None = None
    request_timeout: float = Field(default=60.0, gt=0)
    stream_timeout: float = Field(default=300.0, gt=0)
    app_referer: str | None = "chatstream/1.0"
    app_title: str | None = "chatstream"

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Read ``OPENROUTER_API_KEY`` and ``OPENROUTER_BASE_URL``; kwargs win."""
        values = {}
        if os.getenv("OPENROUTER_API_KEY"):
            values["api_key"] = os.getenv("OPENROUTER_API_KEY")
        if os.getenv("OPENROUTER_BASE_URL"):
            values["base_url"] = os.getenv("OPENROUTER_BASE_URL")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def configure_logging(
    level: int = logging.INFO,
    log_file: str | None = None,
) -> None:
    """Send chatstream logs to stderr and, optionally, a file.

    The library never configures logging on import; applications call
    this once at startup if they want the default format.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )
