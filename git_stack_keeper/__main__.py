import sys

from git_stack_keeper.cli.main import main

sys.exit(main())
