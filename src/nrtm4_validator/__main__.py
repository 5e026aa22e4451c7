import sys

from nrtm4_validator.cli import main

sys.exit(main())
