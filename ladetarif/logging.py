import logging
import sys

# Create the ladetarif logger instance
log = logging.getLogger("ladetarif")
log.setLevel(logging.INFO)
handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(logging.Formatter("%(asctime)s (%(levelname)s): %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
log.addHandler(handler)

# Also log output from the waitress server for debugging purposes
waitress_logger = logging.getLogger("waitress")
waitress_logger.setLevel(logging.INFO)
waitress_logger.addHandler(handler)
