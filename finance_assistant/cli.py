"""Command line entry for the Finance Assistant API."""

from __future__ import annotations

import logging

import uvicorn

from finance_assistant.core.config import settings


def run_server() -> None:
    logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
    uvicorn.run("finance_assistant.api.main:app", host=settings.HOST, port=settings.PORT)


def main() -> None:
    run_server()


if __name__ == "__main__":
    main()
