import logging, sys

RED = "\033[31m"
BOLD_RED = "\033[1;31m"
YELLOW = "\033[33m"
RESET = "\033[0m"

LEVEL_COLOURS = {
	logging.WARNING: YELLOW,
	logging.ERROR: RED,
	logging.CRITICAL: BOLD_RED,
}


class HighlightingFormatter(logging.Formatter):
	"""Colours warnings and errors when writing to a terminal."""

	def __init__(self, *args, colour: bool = True, **kwargs):
		super().__init__(*args, **kwargs)
		self.colour = colour

	def format(self, record):
		message = super().format(record)
		colour = LEVEL_COLOURS.get(record.levelno) if self.colour else None
		if colour:
			return f"{colour}{message}{RESET}"
		return message


def setup_logging(level = logging.INFO, stream = None):
	stream = stream or sys.stdout
	root_logger = logging.getLogger()
	root_logger.setLevel(level)

	handler = logging.StreamHandler(stream)

	formatter = HighlightingFormatter(
		"[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
		datefmt="%H:%M:%S",
		colour=hasattr(stream, "isatty") and stream.isatty(),
	)
	handler.setFormatter(formatter)
	root_logger.addHandler(handler)

	# Keep per-request noise out of the progress stream.
	logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
