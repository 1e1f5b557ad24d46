"""
Streamlit Cloud entrypoint.

Configures logging for the pipeline modules (level from BADGEFLOW_LOG_LEVEL),
then runs ui.py. Streamlit executes this file as __main__; importing it only
exposes the helpers.
"""

import logging
import os
import runpy
import time
from pathlib import Path

_T0 = time.perf_counter()
_PIPELINE_LOGGERS = ("data_loaders", "columns", "matching", "pipeline", "sheets", "singles", "storage", "render")


def _log(msg: str) -> None:
    print(f"[startup] +{time.perf_counter() - _T0:.3f}s {msg}", flush=True)


def configure_logging(environ=None) -> int:
    """Route pipeline logs to stderr (Streamlit Cloud log pane). Returns the level used."""
    env = os.environ if environ is None else environ
    name = (env.get("BADGEFLOW_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    for logger_name in _PIPELINE_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)
    return level


def main() -> None:
    import streamlit as st

    level = configure_logging()
    _log(f"pipeline log level {logging.getLevelName(level)}")
    ui_path = Path(__file__).resolve().parent / "ui.py"
    try:
        runpy.run_path(str(ui_path), run_name="badgeflow_ui")
    except Exception as e:
        # A failed import can leave a blank page; show the exception instead.
        st.error("App failed to start. See details below.")
        st.exception(e)
        _log(f"startup failed: {type(e).__name__}")


if __name__ == "__main__":
    main()
