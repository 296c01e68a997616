"""Entry point for ``python -m ftms_payroll``."""

import sys

from ftms_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
