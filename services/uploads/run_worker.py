import logging

from services.uploads.worker import run_worker_service


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_worker_service()


if __name__ == "__main__":
    main()
