from ..engine import Document


def process(text, source_map, input, packer):
    # Relative URLs are resolved against the file that authored them, found through
    # the incoming source map, rather than against the packed output.
    result = packer.engine.run(Document(text, input.path, source_map))
    packer.found_assets.update(dict.fromkeys(result.assets))
    return result.text, result.source_map
