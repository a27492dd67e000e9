import sys

from civictrack.cli import main

sys.exit(main())
