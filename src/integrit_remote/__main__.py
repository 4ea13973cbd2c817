"""Entry point for `python -m integrit_remote`."""

from integrit_remote.cli.app import app


def main() -> None:
    """Invoke the CLI application."""

    app()


if __name__ == "__main__":
    main()
