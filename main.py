"""
Deployment entrypoint.
Imports the FastAPI app from server.py so uvicorn can find it as main:app,
and runs the server on $PORT when executed directly.
"""

from pdfzip_backend.config import HOST, LOG_FILE, LOG_LEVEL, PORT
from pdfzip_backend.logging_config import setup_logging
from server import app

__all__ = ["app", "main"]

setup_logging(LOG_LEVEL, LOG_FILE)


def main() -> None:
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT, reload=False)


if __name__ == "__main__":
    main()
