import sys

from content_architect.cli import main

sys.exit(main())
