"""Allow ``python -m remitrecon`` to run one reconciliation pass."""

from remitrecon.cli.main import main

if __name__ == "__main__":
    main()
