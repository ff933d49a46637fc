# =============================================================================
# Matcha Entry Point for `python -m matcha`
# =============================================================================
# Equivalent to running the 'matcha' command after installation:
#
#   python -m matcha render message.eml
# =============================================================================

import sys

from matcha.app import main

if __name__ == "__main__":
    sys.exit(main())
