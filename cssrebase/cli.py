import argparse
import logging
import sys

import yaml

from .base import Packer


def main(*args):
    parser = argparse.ArgumentParser(prog="cssrebase")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="config file to use (cssrebase.yaml by default)",
    )
    parser.add_argument(
        "-o", "--output", default=None, help="override output directory"
    )
    parser.add_argument(
        "-y", "--yaml", action="store_true", default=False, help="print YAML config"
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        default=False,
        help="pack assets even if they are up to date",
    )
    parser.add_argument(
        "--debug", action="store_true", default=False, help="log resolution details"
    )
    parser.add_argument("assets", nargs="*", help="assets to pack (all by default)")
    options = parser.parse_args(args=args or None)
    logging.basicConfig(
        level=logging.DEBUG if options.debug else logging.INFO,
        format="%(levelname)s %(message)s",
    )
    overrides = {}
    if options.output:
        overrides["output"] = options.output
    packer = Packer(options.config, **overrides)
    if options.debug:
        packer.options.debug = True
        packer.engine.resolver.debug = True
    if options.yaml:
        print(yaml.safe_dump(packer.dump_config()))
        return
    unknown = [name for name in options.assets if name not in packer.assets]
    if unknown:
        print("Unknown asset: {}".format(", ".join(unknown)), file=sys.stderr)
        sys.exit(1)
    for asset in options.assets or [None]:
        packer.pack(asset, force=options.force)
