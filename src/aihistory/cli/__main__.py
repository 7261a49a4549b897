import sys

from aihistory.cli import main

sys.exit(main())
