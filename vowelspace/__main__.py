import sys

from .run_vowelspace_pipeline import main

sys.exit(main())
