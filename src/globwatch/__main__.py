"""Allow ``python -m globwatch``."""

import sys

from .cli import main

sys.exit(main())
