"""Web application entry point"""

import uvicorn

from utils.log import setup_logging
from config import settings

if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "web.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
