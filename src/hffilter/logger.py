"""Simple module which defines the logging style of the package and returns it."""

import logging
import sys

# Configure the formatting of the logger
logging.basicConfig(format="[%(levelname)s] %(message)s", stream=sys.stdout)

# Capture warning messages and redirect them through the logger
logging.captureWarnings(True)

# Initialize logger
logger = logging.getLogger("hffilter")
