# File Chain:
# Doc Version: v1.0.0
#
# - Called by: Python interpreter when running `python -m natsforge`
# - Calls into: src/natsforge/main.main()
"""Allow running the package with python -m natsforge (same as the natsforge console script)."""
from natsforge.main import main
import sys
sys.exit(main())
