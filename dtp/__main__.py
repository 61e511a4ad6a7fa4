import sys

from .producer import main

sys.exit(main())
