import sys

from patchbridge.cli import main

sys.exit(main())
