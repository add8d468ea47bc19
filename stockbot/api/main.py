from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()  # Load .env file

from stockbot.api.app import create_app
from stockbot.api_stub.runner import build_runner
from stockbot.app.logging import setup_logging
from stockbot.app.settings import load_settings

settings = load_settings()
setup_logging(settings.log_level)

app = create_app(build_runner(settings))


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
