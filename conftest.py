# Ensure tests import `shift_engine` from this checkout, even when another
# copy of the package is installed in the environment.
import os
import sys

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)
