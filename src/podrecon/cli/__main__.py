"""Entry point for ``python -m podrecon.cli``."""

from podrecon.cli.main import main


if __name__ == "__main__":
    main()
