import logging
import os

import sass

logger = logging.getLogger("cssrebase")


def process(text, source_map, input, packer):
    include_paths = [os.path.dirname(input.path)]
    # libsass only writes source maps when it compiles from a file, so that only works
    # when sass is the first processor to touch the input.
    if packer.source_maps and source_map is None and text == input.read():
        stem = os.path.splitext(input.path)[0]
        return sass.compile(
            filename=input.path,
            include_paths=include_paths,
            source_map_filename=stem + ".css.map",
            output_filename_hint=stem + ".css",
            source_map_contents=True,
            omit_source_map_url=True,
        )
    if packer.source_maps:
        logger.debug("Compiling {} without a source map".format(input))
    return (
        sass.compile(
            string=text,
            include_paths=include_paths,
            indented=input.path.endswith(".sass"),
        ),
        None,
    )
