import sys

from futures_quant.cli import main

sys.exit(main())
