"""Allow running with python -m lossless_mirror."""

from lossless_mirror.cli import cli


if __name__ == "__main__":
    cli()
