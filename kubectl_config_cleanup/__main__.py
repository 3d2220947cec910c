import sys

from kubectl_config_cleanup.cli import main

sys.exit(main())
