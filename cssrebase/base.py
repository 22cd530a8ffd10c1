import glob
import importlib
import logging
import os
import shutil
import tempfile
from urllib.parse import urljoin

import yaml

from .engine import Engine, Options
from .processors import __all__ as builtin_processors
from .resolver import ContentIdentifier, SingleFlightCache
from .rewriter import Mode
from .sourcemap import SourceMap

logger = logging.getLogger("cssrebase")

DEFAULT_PROCESSORS = {
    "css": ["rewrite"],
    "scss": ["sass", "rewrite"],
    "sass": ["sass", "rewrite"],
}


class Input:
    def __init__(self, name, path, processors=None, depends=None):
        self.name = name
        self.path = path
        self.processors = processors or []
        self.depends = depends or []

    def __str__(self):
        return self.name

    def check_paths(self):
        yield self.path
        root = os.path.dirname(self.path)
        for dep in self.depends:
            yield from glob.iglob(os.path.join(root, dep))

    def modified(self, mtime):
        for path in self.check_paths():
            if os.path.getmtime(path) > mtime:
                return True
        return False

    def read(self):
        with open(self.path, "r", encoding="utf-8") as f:
            return f.read()

    def process(self, packer):
        """
        Runs the input through its processors, returning (text, source_map). Each
        processor gets the previous one's output and map, and returns its own.
        """
        text = self.read()
        source_map = None
        for proc in self.processors:
            module_name, method_name = proc.rsplit(".", 1)
            module = importlib.import_module(module_name)
            method = getattr(module, method_name)
            text, source_map = method(text, source_map, self, packer)
        return text, source_map


class Packer:
    def __init__(self, config=None, base_dir=None, **options):
        self.base_dir = base_dir
        config_opts = self.load_config(
            config or "cssrebase.yaml", raise_if_missing=bool(config)
        )
        config_opts.update(options)
        self.configure(config_opts)

    def resolve(self, path):
        path = str(path)
        if os.path.isabs(path) or not self.base_dir:
            return path
        return os.path.abspath(os.path.normpath(os.path.join(self.base_dir, path)))

    def load_config(self, config_file, raise_if_missing=False):
        try:
            with open(self.resolve(config_file), "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            if raise_if_missing:
                raise e
        return {}

    def dump_config(self):
        defaults = {
            ext: procs
            for ext, procs in self.defaults.items()
            if DEFAULT_PROCESSORS.get(ext) != procs
        }
        concat = self.concat.copy()
        if concat.get("css") == "\n":
            concat.pop("css")
        register = {
            name: method
            for name, method in self.processors.items()
            if name not in builtin_processors
        }
        config = {
            "assets": self.assets,
        }
        if not self.ephemeral:
            config["output"] = self.location
        if self.search != ["."]:
            config["search"] = self.search
        if self.prefix:
            config["prefix"] = self.prefix
        if register:
            config["register"] = register
        if defaults:
            config["defaults"] = defaults
        if concat:
            config["concat"] = concat
        rebase = {
            key: value
            for key, value in self.options.to_config().items()
            if Options().to_config()[key] != value
        }
        if rebase:
            config["rebase"] = rebase
        return config

    def configure(self, config):
        self.location = config.get("output") or tempfile.mkdtemp(prefix="cssrebase-")
        self.ephemeral = not config.get("output")
        self.search = config.get("search", ".")
        if isinstance(self.search, str):
            self.search = [self.search]
        self.prefix = config.get("prefix", "")
        self.processors = {
            name: "cssrebase.processors.{}.process".format(name)
            for name in builtin_processors
        }
        self.processors.update(config.get("register", {}))
        self.defaults = {ext: list(procs) for ext, procs in DEFAULT_PROCESSORS.items()}
        for name, procs in config.get("defaults", {}).items():
            if isinstance(procs, str):
                procs = [procs]
            for proc in procs:
                if proc not in self.processors:
                    raise Exception("Unknown processor: {}".format(proc))
            self.defaults[name] = procs
        self.concat = {"css": "\n"}
        self.concat.update(config.get("concat", {}))
        self.assets = config.get("assets", {})
        self.options = Options.from_config(config.get("rebase", {}))
        # Module roots and the root directory are relative to base_dir, like inputs.
        self.options.modules = [self.resolve(m) for m in self.options.modules]
        if self.options.root:
            self.options.root = self.resolve(self.options.root)
        # The packer owns its caches so that a repack sees files added or changed
        # since the last one.
        self.cache = SingleFlightCache()
        self.content_identifier = ContentIdentifier(cache=SingleFlightCache())
        self.engine = Engine(self.options, identify=self.identify, cache=self.cache)
        self.found_assets = {}

    def reset(self):
        self.cache.clear()
        self.content_identifier.cache.clear()
        self.found_assets = {}

    @property
    def storage_path(self):
        return self.resolve(self.location)

    @property
    def source_maps(self):
        return self.options.source_map

    def identify(self, path):
        """The URL a content-derived asset is referenced by in packed output."""
        return urljoin(self.prefix, self.content_identifier(path))

    def find_input(self, name):
        """
        Returns the full path of the specified input name, if it exists. By default,
        all directories in self.search are searched.
        """
        for root in self.search:
            path = os.path.join(self.resolve(root), name)
            if os.path.exists(path):
                return path
        return None

    def iter_assets(self):
        """
        Yields (asset_name, inputs) pairs, where inputs is a list of Input objects.
        """
        for name, specs in self.assets.items():
            if isinstance(specs, str):
                specs = [specs]
            inputs = []
            for spec in specs:
                if isinstance(spec, str):
                    depends = []
                elif isinstance(spec, dict):
                    spec, depends = list(spec.items())[0]
                else:
                    raise ValueError("Unknown input type: {}".format(spec))
                *processors, input_name = spec.split(":")
                if processors:
                    # cssmin:rewrite:somefile.scss --> cssmin(rewrite(somefile.scss))
                    processors = list(reversed(processors))
                else:
                    ext = os.path.splitext(input_name)[1].replace(".", "").lower()
                    processors = self.defaults.get(ext, [])
                for proc in processors:
                    if proc not in self.processors:
                        raise Exception("Unknown processor: {}".format(proc))
                processors = [self.processors[proc] for proc in processors]
                path = self.find_input(input_name)
                if path:
                    inputs.append(Input(input_name, path, processors, depends))
                else:
                    logger.error("Input not found: {}".format(input_name))
            yield name, inputs

    def modified(self, inputs, mtime=0):
        """
        Returns (quickly) if any of the inputs were modified since mtime.
        """
        for i in inputs:
            if i.modified(mtime):
                return True
        return False

    def relocate(self, source_map, input, output_path):
        """
        Rewrites the sources of an input's map relative to the packed output, so the
        map is still valid once it sits next to the output file.
        """
        if source_map is None:
            return None
        source_map = SourceMap.from_json(source_map)
        input_dir = os.path.dirname(os.path.abspath(input.path))
        output_dir = os.path.dirname(os.path.abspath(output_path))
        sources = []
        for source in source_map.sources:
            if source_map.source_root:
                source = os.path.join(source_map.source_root, source)
            path = os.path.abspath(os.path.join(input_dir, source))
            sources.append(os.path.relpath(path, output_dir).replace(os.sep, "/"))
        relocated = SourceMap(
            sources=sources,
            mappings=source_map.mappings,
            names=source_map.names,
            sources_content=source_map.sources_content,
        )
        return relocated

    def build(self, name, inputs, output_path):
        """
        Processes and concatenates inputs, returning (text, source_map). The map is
        None when source maps are disabled or no input produced one.
        """
        ext = os.path.splitext(name)[1].replace(".", "").lower()
        sep = self.concat.get(ext, "\n")
        logger.debug(
            "Packing {} <<< {}".format(name, " | ".join(str(i) for i in inputs))
        )
        texts = []
        parts = []
        for idx, i in enumerate(inputs):
            text, source_map = i.process(self)
            if idx < len(inputs) - 1:
                text += sep
            texts.append(text)
            parts.append((text.count("\n"), self.relocate(source_map, i, output_path)))
        if not self.source_maps or all(m is None for _, m in parts):
            return "".join(texts), None
        return "".join(texts), SourceMap.concat(parts, file=os.path.basename(name))

    def copy_assets(self):
        """Copies resolved assets into the output under their content-derived names."""
        if self.options.mode is not Mode.CONTENT_DERIVED:
            return
        for path in self.found_assets:
            target = os.path.join(self.storage_path, self.content_identifier(path))
            if not os.path.exists(target):
                logger.debug("Copying {} -> {}".format(path, target))
                os.makedirs(os.path.dirname(target), exist_ok=True)
                shutil.copyfile(path, target)

    def pack_to(self, asset, output, encoding="utf-8"):
        """
        Packs a single asset directly into an output buffer with the specified encoding.
        Source maps are not written.
        """
        self.reset()
        for name, inputs in self.iter_assets():
            if asset != name:
                continue
            path = self.resolve(os.path.join(self.location, name))
            text, _ = self.build(name, inputs, path)
            output.write(text.encode(encoding))

    def pack(self, asset=None, force=False):
        """
        Packs one or all assets. By default, assets will only be packed if they have not
        been previously packed, or if any of the inputs to an asset have changed since
        the last time it was packed. To force packing, set force=True. To pack only a
        single asset, specify a path.
        """
        self.reset()
        for name, inputs in self.iter_assets():
            if asset and asset != name:
                continue
            path = self.resolve(os.path.join(self.location, name))
            mtime = os.path.getmtime(path) if os.path.exists(path) else 0
            if force or mtime == 0 or self.modified(inputs, mtime):
                os.makedirs(os.path.dirname(path), exist_ok=True)
                text, source_map = self.build(name, inputs, path)
                if source_map is not None:
                    map_name = os.path.basename(name) + ".map"
                    with open(path + ".map", "w", encoding="utf-8") as output:
                        output.write(source_map.to_json())
                    text += "\n/*# sourceMappingURL={} */".format(map_name)
                with open(path, "w", encoding="utf-8") as output:
                    output.write(text)
        self.copy_assets()
