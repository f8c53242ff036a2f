import sys

from cmdcue.cli import main

sys.exit(main())
