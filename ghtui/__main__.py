import sys

from ghtui.cli import main

sys.exit(main())
