import sys

from replwatch.cli import main

sys.exit(main())
