"""Allow ``python -m storeshrink``."""

import sys

from storeshrink.cli import main

sys.exit(main())
