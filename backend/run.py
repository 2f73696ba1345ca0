# run.py
import uvicorn

from chatrelay.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "chatrelay.main:app",
        host="0.0.0.0",
        port=3002,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
