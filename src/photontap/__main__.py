import sys

from photontap.main import main

sys.exit(main())
