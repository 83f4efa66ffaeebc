import sys

from spindownd.cli import main

sys.exit(main())
