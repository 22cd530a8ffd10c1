import logging

import rcssmin

logger = logging.getLogger("cssrebase")


def process(text, source_map, input, packer):
    if source_map is not None:
        logger.debug("Minifying {} discards its source map".format(input))
    return rcssmin.cssmin(text), None
