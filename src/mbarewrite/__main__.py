import sys

from mbarewrite.cli import main

sys.exit(main())
