from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from authflow.app import create_app
from authflow.core.config import AppConfig
from authflow.core.logging import setup_logging

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)

APP_ROOT = Path(__file__).resolve().parent

app = create_app(APP_CONFIG, app_root=APP_ROOT)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "web_api:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
    )
