"""Entry point for ``python -m mobiquo``."""

from mobiquo.cli.commands import app

if __name__ == "__main__":
    app()
