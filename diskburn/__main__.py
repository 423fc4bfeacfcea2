import sys

from diskburn.cli import main

sys.exit(main())
