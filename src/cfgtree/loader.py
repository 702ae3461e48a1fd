"""
Configuration loading orchestration.

`Config` wires the backends together: it registers command-line flags for
every field plus a few special flags, then loads values in priority order
(defaults, environment variables, a configuration file, flags) and finally
runs the post-load validation hooks.

Special flags:
    -c/--config PATH     load a TOML, JSON or YAML file
    -g/--gen FORMAT      print a configuration template (toml, json, yaml, env) and exit
    --show               print the loaded configuration and exit
    -v/--version         print the version and exit (only when a version is set)
"""

import argparse
import logging
import os
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from cfgtree.encoding import env, file
from cfgtree.encoding.flag import FlagOptions, FlagSet
from cfgtree.exceptions import CfgTreeError, TagUsageError, UnsupportedFormatError
from cfgtree.render import Renderer, RenderOptions
from cfgtree.structure.builder import BuildOptions, build_node_sets

logger = logging.getLogger(__name__)

Validator = Callable[..., Any]

VALIDATE_HOOK = "validate_config"
GEN_FORMATS = ("toml", "json", "yaml", "yml", "env")


@dataclass
class LoaderOptions:
    """
    Configuration for `Config`.

    Params:
        env_enabled: Read environment variables
        file_enabled: Register -c/--config and -g/--gen and read configuration files
        flag_enabled: Register one flag per field (special flags are always available)
        formats: Document formats accepted for -c/--config
        version: Application version, enables -v/--version
        description: Text shown at the top of the help page
        flag_options: Flag backend options
        show_options: Rendering options for --show
        build_options: Tree building options
    """

    env_enabled: bool = True
    file_enabled: bool = True
    flag_enabled: bool = True
    formats: tuple[str, ...] = file.FORMATS
    version: str = ""
    description: str = ""
    flag_options: FlagOptions = field(default_factory=FlagOptions)
    show_options: RenderOptions = field(default_factory=RenderOptions)
    build_options: BuildOptions = field(default_factory=BuildOptions)

    @classmethod
    def from_dict(cls, config: dict | None = None) -> "LoaderOptions":
        """Factory method to create options from dict with defaults."""
        if config is None:
            config = {}
        config = dict(config)
        for key, factory in (
            ("flag_options", FlagOptions),
            ("show_options", RenderOptions),
            ("build_options", BuildOptions),
        ):
            if isinstance(config.get(key), dict):
                config[key] = factory.from_dict(config[key])
        return cls(**config)


class Config:
    """
    Loads one or more configuration targets from all sources.

    Params:
        targets: Model or dataclass instances holding the defaults; modified in place
        options: Loader options, switches below adjust them fluently

    Example:
        options = AppOptions()
        Config(options).with_version("1.0.0").load()
    """

    def __init__(self, *targets: Any, options: LoaderOptions | None = None):
        self.targets = targets
        self.options = options or LoaderOptions()
        self._validators: list[Validator] = []

    def with_version(self, version: str) -> "Config":
        self.options.version = version
        return self

    def with_description(self, description: str) -> "Config":
        self.options.description = description
        return self

    def disable_env(self) -> "Config":
        self.options.env_enabled = False
        return self

    def disable_files(self) -> "Config":
        self.options.file_enabled = False
        return self

    def disable_format(self, fmt: str) -> "Config":
        """Stop accepting one document format ("toml", "json" or "yaml")."""
        fmt = file.normalize_format(fmt)
        self.options.formats = tuple(f for f in self.options.formats if f != fmt)
        return self

    def disable_flags(self) -> "Config":
        """Stop registering field flags; -c, -g, --show and -v keep working."""
        self.options.flag_enabled = False
        return self

    def with_show_options(self, options: RenderOptions) -> "Config":
        self.options.show_options = options
        return self

    def with_validator(self, validator: Validator) -> "Config":
        """Add a hook called with the targets after loading."""
        self._validators.append(validator)
        return self

    def _build_parser(self) -> tuple[argparse.ArgumentParser, FlagSet | None]:
        flag_options = self.options.flag_options
        parser = argparse.ArgumentParser(
            prog=flag_options.prog,
            description=self.options.description or flag_options.description or None,
            epilog=flag_options.epilog or None,
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        flags = None
        if self.options.flag_enabled:
            flags = FlagSet(
                *self.targets,
                options=flag_options,
                build_options=self.options.build_options,
                parser=parser,
            )

        try:
            special = parser.add_argument_group("general")
            if self.options.file_enabled:
                special.add_argument(
                    "-c",
                    "--config",
                    dest="cfgtree_config",
                    metavar="PATH",
                    help="path for config file",
                )
                special.add_argument(
                    "-g",
                    "--gen",
                    dest="cfgtree_gen",
                    metavar="FORMAT",
                    choices=GEN_FORMATS,
                    help="generate config file (" + ",".join(GEN_FORMATS) + ")",
                )
            special.add_argument(
                "--show",
                dest="cfgtree_show",
                action="store_true",
                help="print out the value of the config",
            )
            if self.options.version:
                special.add_argument(
                    "-v",
                    "--version",
                    action="version",
                    version=self.options.version,
                    help="show app version",
                )
        except argparse.ArgumentError as err:
            raise TagUsageError(
                err.argument_name or "", f"field flag conflicts with a reserved flag: {err}"
            ) from err
        return parser, flags

    def load(
        self,
        args: Sequence[str] | None = None,
        environ: Mapping[str, str] | None = None,
        output: TextIO | None = None,
    ) -> None:
        """
        Load all sources into the targets.

        Params:
            args: Command-line arguments without the program name, defaults to sys.argv[1:]
            environ: Environment mapping, defaults to os.environ
            output: Stream for --gen and --show, defaults to stdout

        Raises:
            SystemExit: After --gen, --show, --version or --help, or on bad arguments
            CfgTreeError: If a source cannot be applied
        """
        output = output or sys.stdout
        parser, flags = self._build_parser()

        if flags is not None:
            namespace = flags.parse(args)
        else:
            namespace = parser.parse_args(sys.argv[1:] if args is None else list(args))

        gen_format = getattr(namespace, "cfgtree_gen", None)
        if gen_format:
            output.write(file.unload(gen_format, *self.targets))
            raise SystemExit(0)

        renderer = None
        if namespace.cfgtree_show:
            renderer = Renderer(
                *self.targets,
                options=self.options.show_options,
                build_options=self.options.build_options,
            )

        if self.options.env_enabled:
            env.load_nodes(
                build_node_sets(*self.targets, options=self.options.build_options),
                os.environ if environ is None else environ,
            )
            logger.debug("Loaded environment variables")

        config_path = getattr(namespace, "cfgtree_config", None)
        if config_path:
            self._load_file(config_path)

        if flags is not None:
            flags.apply()
            logger.debug("Applied command-line flags")

        if renderer is not None:
            output.write(renderer.render())
            raise SystemExit(0)

        self.validate()

    def _load_file(self, path: str | Path) -> None:
        fmt = file.format_from_path(path)
        if fmt not in self.options.formats:
            raise UnsupportedFormatError(str(path), self.options.formats)
        file.load(path, *self.targets)
        logger.info("Loaded configuration file %s", path)

    def validate(self) -> None:
        """
        Run the post-load hooks.

        Each target's `validate_config()` method is called when it has one,
        then every validator registered with `with_validator`. Errors propagate
        unchanged.
        """
        for target in self.targets:
            hook = getattr(target, VALIDATE_HOOK, None)
            if callable(hook):
                hook()
        for validator in self._validators:
            validator(*self.targets)

    def load_or_exit(self, args: Sequence[str] | None = None) -> None:
        """Like `load`, but report any error on stderr and exit with status 1."""
        try:
            self.load(args)
        except (CfgTreeError, ValueError, OSError) as err:
            print(f"err: {err}", file=sys.stderr)
            raise SystemExit(1) from err


def load(*targets: Any, args: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> None:
    """Load targets from all sources with the default options."""
    Config(*targets).load(args, environ)


def load_env(*targets: Any, environ: Mapping[str, str] | None = None) -> None:
    """Load targets from environment variables only."""
    env.load(*targets, environ=environ)


def load_file(path: str | Path, *targets: Any) -> None:
    """Load targets from a configuration file only."""
    file.load(path, *targets)


def load_flags(*targets: Any, args: Sequence[str] | None = None) -> None:
    """Load targets from command-line flags only."""
    flags = FlagSet(*targets)
    flags.parse(args)
    flags.apply()
