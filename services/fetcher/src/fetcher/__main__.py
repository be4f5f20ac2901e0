import uvicorn

from core_config import get_settings


def main() -> None:
    uvicorn.run("fetcher.app:app", host="0.0.0.0", port=get_settings().port, access_log=False)


if __name__ == "__main__":
    main()
