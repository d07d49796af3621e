"""
Process-wide logging setup.

One stdout handler on the root logger; Railway / Render and gunicorn's
errorlog all capture stdout. Service modules only ever do
`logger = logging.getLogger(__name__)`.
"""
import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(h, "_journal_analytics", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._journal_analytics = True  # type: ignore[attr-defined]
    root.addHandler(handler)
