import sys

from twpatcher.cli import main

sys.exit(main())
