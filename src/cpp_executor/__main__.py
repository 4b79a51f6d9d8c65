import uvicorn

from .settings import get_settings


def main() -> None:
    s = get_settings()
    uvicorn.run("cpp_executor.api.app:app", host=s.host, port=s.port, log_level=s.log_level.lower())


if __name__ == "__main__":
    main()
