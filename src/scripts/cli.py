import argparse
import sys

from pyhalo_select import (
    CatalogCache,
    GlobalConfig,
    HaloSelectError,
    HDF5CatalogReader,
    IDConfig,
    SelectionPipeline,
)

# Parse input parameters.
parser = argparse.ArgumentParser(
    description="The pyhalo_select CLI interface",
    formatter_class=argparse.ArgumentDefaultsHelpFormatter,
)
subparsers = parser.add_subparsers(title="subcommand", dest="subcommand")

# Select halos from a snapshot's catalog.
arg_id = subparsers.add_parser(
    "id", help="Select (halo ID, snapshot) pairs from a halo catalog"
)
arg_id.add_argument("config", help="Path to id.config file", type=str)
arg_id.add_argument(
    "--global", dest="global_config", help="Path to global config file",
    type=str, required=True,
)
arg_id.add_argument("--verbose", help="Log progress", action="store_true")
arg_id.add_argument(
    "--timing", help="Print a timing report to stderr", action="store_true"
)

# Print an example id.config file.
arg_example = subparsers.add_parser(
    "example-config", help="Print an annotated example id.config file"
)


def run_id(args):
    id_config = IDConfig.from_file(args.config)
    global_config = GlobalConfig.from_file(args.global_config)

    reader = HDF5CatalogReader(
        global_config.catalog_pattern, column_names=global_config.column_names
    )
    pipeline = SelectionPipeline(
        id_config, global_config, CatalogCache(reader), verbose=args.verbose
    )
    lines = pipeline.run()

    if args.timing:
        for name, t in pipeline.get_performance_report().items():
            print(f"{name}: {t:.3f} s", file=sys.stderr)

    return lines


def main(argv=None):
    args = parser.parse_args(argv)

    if args.subcommand == "id":
        try:
            lines = run_id(args)
        except HaloSelectError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print("\n".join(lines))

    elif args.subcommand == "example-config":
        print(IDConfig.example_config(), end="")

    else:
        parser.print_help()
        return 1

    return 0
