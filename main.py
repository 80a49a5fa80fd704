import uvicorn

from bello.config import HOST, LOG_LEVEL, PORT


def run() -> None:
    uvicorn.run("bello.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
