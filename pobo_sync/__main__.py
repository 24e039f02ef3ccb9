import sys

from pobo_sync.cli import main

sys.exit(main())
