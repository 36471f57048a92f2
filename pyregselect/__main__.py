import sys

from pyregselect.cli import main

sys.exit(main())
