# utils/logging_setup.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

APP_NAME = "lapju"
FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"


def _state_dir(app: str = APP_NAME) -> Path:
    base = os.environ.get("XDG_STATE_HOME", os.path.expanduser("~/.local/state"))
    d = Path(base) / app / "logs"
    d.mkdir(parents=True, exist_ok=True)
    return d


def setup_logging(app_name: str = APP_NAME) -> Path:
    # Level via env (DEBUG/INFO/WARNING/ERROR), default INFO
    level_name = os.environ.get("LAPJU_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logfile = _state_dir(app_name) / f"{app_name}.log"

    root = logging.getLogger()
    root.setLevel(level)

    # Streamlit re-runs the script on every interaction; attach handlers once
    if any(getattr(h, "_lapju", False) for h in root.handlers):
        return logfile

    # File: rotate at 5MB, keep 7 backups
    fh = RotatingFileHandler(logfile, maxBytes=5_000_000, backupCount=7, encoding="utf-8")
    ch = logging.StreamHandler(sys.stdout)
    for handler in (fh, ch):
        handler.setFormatter(logging.Formatter(FORMAT, DATEFMT))
        handler.setLevel(level)
        handler._lapju = True
        root.addHandler(handler)

    def _excepthook(exctype, value, tb):
        logging.getLogger("unhandled").error("Uncaught exception", exc_info=(exctype, value, tb))
        sys.__excepthook__(exctype, value, tb)
    sys.excepthook = _excepthook

    logging.getLogger(__name__).info("Logging initialized at %s; file: %s", level_name, logfile)
    return logfile
