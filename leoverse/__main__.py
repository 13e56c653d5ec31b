import sys

from leoverse.api.cli import main

sys.exit(main())
