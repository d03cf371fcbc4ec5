import sys

from senec_exporter.main import main

sys.exit(main())
