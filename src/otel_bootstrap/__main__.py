"""Allow ``python -m otel_bootstrap``."""

from otel_bootstrap.cli.main import main

if __name__ == "__main__":
    main()
