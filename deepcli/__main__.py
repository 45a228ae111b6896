import sys

from deepcli.main import main

sys.exit(main())
