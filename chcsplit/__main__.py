"""
Allow running chcsplit as a module:

    python -m chcsplit solve problem.smt2 [options]

Delegates to chcsplit.cli:main().
"""
import sys
from .cli import main

sys.exit(main())
