import sys

from archive_search.cli import main


sys.exit(main())
