"""Entry point for `python -m techpulse` and `techpulse` CLI."""

from techpulse.cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
