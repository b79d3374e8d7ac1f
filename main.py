import argparse
import logging
import sys

import sources
from spinventory import Inventory, ReportKind, RunConfig
from spinventory.logger import setup_logging


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="SharePoint farm inventory")
	parser.add_argument("--source", "-s", required=True, help="Hierarchy snapshot (.json) or SharePoint web application URL")
	parser.add_argument("--destination-folder", "-d", default=None, help="Folder that receives the report files")
	parser.add_argument("--log-file-prefix", "-p", default=None, help="Prefix for every generated file name")
	parser.add_argument("--clear-prior-logs", action="store_true", help="Delete <prefix>*.csv and <prefix>*.txt before starting")
	parser.add_argument("--profile", default=None, help="JSON run profile with default settings")
	parser.add_argument("--cookies", "-c", default=None, help="Cookie file for the SharePoint REST source")
	parser.add_argument("--token", default=None, help="Bearer token for the SharePoint REST source")
	parser.add_argument("--debug", action="store_true", help="Enable debug logging")

	reports = parser.add_argument_group("reports")
	reports.add_argument("--full-inventory", action="store_true", help="Enable every report")
	reports.add_argument("--include-subweb-sizes", action="store_true", help="Web sizes include their subsites")
	for report in ReportKind:
		reports.add_argument(f"--{report.flag}", action="store_true", help=f"Write {report.file_name}")

	return parser


def build_config(args: argparse.Namespace) -> RunConfig:
	settings = RunConfig.load(args.profile) if args.profile else {}

	if args.destination_folder:
		settings["output_directory"] = args.destination_folder
	if args.log_file_prefix:
		settings["file_prefix"] = args.log_file_prefix
	if args.clear_prior_logs:
		settings["clear_prior_logs"] = True
	if args.include_subweb_sizes:
		settings["include_subweb_sizes"] = True

	if args.full_inventory:
		reports = set(ReportKind)
	else:
		reports = {ReportKind(r) for r in settings.get("reports", [])}
		reports.update(r for r in ReportKind if getattr(args, r.flag.replace("-", "_")))
	settings["reports"] = frozenset(reports)

	return RunConfig.from_dict(settings)


def main(argv=None) -> int:
	args = build_parser().parse_args(argv)

	setup_logging(level=logging.DEBUG if args.debug else logging.INFO)

	source = None
	try:
		config = build_config(args)
		config.validate()

		source = sources.get_source_for(args.source, cookies=args.cookies, token=args.token)
		if source is None:
			raise ValueError(f"No source understands {args.source}")

		result = Inventory(config, source).run()
		if not result.success:
			logging.warning(f"{result.errors} error(s) logged to {config.error_file_path}")
		return 0

	except KeyboardInterrupt:
		logging.info("Interrupted; report files hold everything written so far")
		return 130
	except Exception as e:
		logging.critical(f"Fatal error: {e}", exc_info=args.debug)
		return 1
	finally:
		if source is not None:
			source.close()


if __name__ == "__main__":
	sys.exit(main())
