import uvicorn

from .settings import settings


def main():
    uvicorn.run(
        "recipeshare.app:app",
        host="0.0.0.0",
        port=3000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
