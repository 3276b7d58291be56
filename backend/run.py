# run.py
import uvicorn
from assignflow.core.config import settings

if __name__ == "__main__":
    # API only; the Celery worker and beat run as separate processes
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        proxy_headers=True,
    )
