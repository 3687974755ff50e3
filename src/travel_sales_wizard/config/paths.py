from __future__ import annotations

import os
import sys
from pathlib import Path

HOME_ENV_VAR = "SALES_WIZARD_HOME"


def app_base_dir() -> Path:
    """
    Directory the `.env` file is read from.

    `SALES_WIZARD_HOME` wins when set. A frozen build uses the folder of the
    executable; a source checkout uses the project root.
    """
    override = os.environ.get(HOME_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser().resolve()

    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent

    # src/travel_sales_wizard/config/paths.py
    return Path(__file__).resolve().parents[3]


def env_file_path() -> Path:
    return app_base_dir() / ".env"
