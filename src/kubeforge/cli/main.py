#!/usr/bin/env python3
"""
KUBEFORGE CLI - Build Shell
---------------------------
Command-line front door to the resource pipeline. Translates flags and the
optional ``kubeforge.yaml`` into a PipelineCoordinator run, renders the
outcome and maps failures onto process exit codes:

    0    success (written or skipped)
    1    validation failed
    2    configuration error
    3    any other pipeline error
    130  cancelled

Author: KubeForge Team
Date: 2026-01-16
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from kubeforge.cli.config import build_project, build_settings, load_config_file
from kubeforge.cli.formatter import KubeFormatter
from kubeforge.cli.logging_setup import setup_logging
from kubeforge.core.engine import OpenShiftCoordinator, PipelineCoordinator
from kubeforge.core.errors import (
    ConfigError,
    KubeForgeError,
    PipelineCancelled,
    ValidationFailed,
)
from kubeforge.core.models import CancelToken, ImageConfiguration, PlatformMode, ResourceClassifier
from kubeforge.validator.validator import ResourceValidator

VERSION = "1.0.0"

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_CONFIG = 2
EXIT_PIPELINE = 3
EXIT_CANCELLED = 130

logger = logging.getLogger("kubeforge.cli")


def _parse_property(value: str):
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{value}'")
    key, _, val = value.partition("=")
    return key.strip(), val


class KubeForgeCLI:
    """
    CLI wrapper that translates user commands into pipeline runs.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.formatter = KubeFormatter(self.console)
        self.parser = argparse.ArgumentParser(
            prog="kubeforge",
            description="KubeForge - Kubernetes & OpenShift manifest bundle generator",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self._setup_args()

    def _setup_args(self):
        """Configures the command-line flags and subcommands."""
        self.parser.add_argument("-v", "--version", action="version", version=f"kubeforge v{VERSION}")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        # 'resource' subcommand - generate the manifest bundle
        res = subparsers.add_parser("resource", help="Generate the manifest bundle for a project")
        res.add_argument("path", nargs="?", default=".", help="Project base directory (default: .)")
        res.add_argument("--config", type=Path, help="Project file (default: <path>/kubeforge.yaml)")
        res.add_argument("--platform", choices=[m.value for m in PlatformMode], default="kubernetes",
                         help="Target platform (default: kubernetes)")
        res.add_argument("--target-dir", help="Bundle output directory")
        res.add_argument("--resource-dir", help="Fragment directory (default: src/main/jkube)")
        res.add_argument("--environment", help="Environment subdirectory of the fragment directory")
        res.add_argument("--work-dir", help="Scratch directory for fragment processors")
        res.add_argument("--profile", help="Processor profile name")
        res.add_argument("--resource-type", dest="resource_file_type", choices=["yaml", "json"],
                         help="Output format")
        res.add_argument("--namespace", help="Namespace used for OpenShift image names")
        res.add_argument("--image", action="append", default=[], metavar="NAME",
                         help="Add an image by name (repeatable)")
        res.add_argument("-P", "--property", action="append", default=[], type=_parse_property,
                         metavar="KEY=VALUE", help="Set a project property (repeatable)")
        self._bool_flag(res, "skip", "skip_resource", "Skip resource generation")
        self._bool_flag(res, "skip-validation", "skip_resource_validation", "Do not validate the bundle")
        self._bool_flag(res, "fail-on-validation-error", "fail_on_validation_error",
                        "Abort when validation finds errors")
        self._bool_flag(res, "use-project-classpath", "use_project_classpath",
                        "Load processors from the project classpath")
        self._bool_flag(res, "interpolate", "interpolate_template_parameters",
                        "Interpolate Template parameters in the output")
        self._bool_flag(res, "merge-with-dekorate", "merge_with_dekorate",
                        "Merge with Dekorate output instead of delegating")
        self._logging_args(res)

        # 'validate' subcommand - check an existing bundle directory
        val = subparsers.add_parser("validate", help="Validate a written bundle directory")
        val.add_argument("path", help="Classifier directory, e.g. target/classes/META-INF/jkube/kubernetes")
        val.add_argument("--platform", choices=[m.value for m in PlatformMode], default="kubernetes")
        val.add_argument("--strict", action="store_true", help="Report fields unknown to the catalog")
        self._logging_args(val)

    @staticmethod
    def _bool_flag(parser: argparse.ArgumentParser, flag: str, dest: str, help_text: str):
        parser.add_argument(f"--{flag}", dest=dest, action="store_true", default=None, help=help_text)
        parser.add_argument(f"--no-{flag}", dest=dest, action="store_false", help=argparse.SUPPRESS)

    @staticmethod
    def _logging_args(parser: argparse.ArgumentParser):
        parser.add_argument("--log-level", default="INFO",
                            choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log verbosity")
        parser.add_argument("--log-file", type=Path, help="Also write logs to this file")

    # --- Commands ---

    def _run_resource(self, args: argparse.Namespace, cancel: CancelToken) -> int:
        base_dir = Path(args.path).resolve()
        raw = load_config_file(args.config, base_dir)
        project = build_project(base_dir, raw, dict(args.property))

        overrides = {
            key: getattr(args, key)
            for key in (
                "target_dir", "resource_dir", "environment", "work_dir", "profile",
                "resource_file_type", "namespace", "skip_resource", "skip_resource_validation",
                "fail_on_validation_error", "use_project_classpath",
                "interpolate_template_parameters", "merge_with_dekorate",
            )
        }
        overrides["images"] = [ImageConfiguration(name=name) for name in args.image]
        settings = build_settings(base_dir, raw, overrides)

        coordinator_cls = OpenShiftCoordinator if args.platform == PlatformMode.openshift.value \
            else PipelineCoordinator
        self.formatter.print_header(f"{args.platform.capitalize()} Resources", VERSION)

        result = coordinator_cls(project, settings, cancel=cancel).execute()

        self.formatter.show_warnings(result.warnings)
        self.formatter.print_bundle_table(result)
        self.formatter.print_summary(result)
        return EXIT_OK

    def _run_validate(self, args: argparse.Namespace) -> int:
        classifier = ResourceClassifier.OPENSHIFT if args.platform == PlatformMode.openshift.value \
            else ResourceClassifier.KUBERNETES
        resource_dir = Path(args.path)
        if not resource_dir.is_dir():
            raise ConfigError(f"Path '{args.path}' is not a directory")
        checked = ResourceValidator(resource_dir, classifier, strict=args.strict).validate()
        self.console.print(f"[green]✅ {checked} resource(s) valid[/green]")
        return EXIT_OK

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Primary routing entry point."""
        args = self.parser.parse_args(argv)
        if not args.command:
            self.parser.print_help()
            return EXIT_OK

        setup_logging(args.log_level, args.log_file)
        cancel = CancelToken()
        previous = self._install_interrupt(cancel)
        try:
            if args.command == "resource":
                return self._run_resource(args, cancel)
            return self._run_validate(args)
        except PipelineCancelled as e:
            self.formatter.print_error(str(e))
            return EXIT_CANCELLED
        except KeyboardInterrupt:
            self.formatter.print_error("Terminated by user.")
            return EXIT_CANCELLED
        except ValidationFailed as e:
            self.formatter.show_warnings(e.details)
            self.formatter.print_error("Resource validation failed")
            return EXIT_VALIDATION
        except ConfigError as e:
            self.formatter.print_error(str(e))
            return EXIT_CONFIG
        except KubeForgeError as e:
            self.formatter.print_error(str(e))
            return EXIT_PIPELINE
        finally:
            if previous is not None:
                signal.signal(signal.SIGINT, previous)

    @staticmethod
    def _install_interrupt(cancel: CancelToken):
        """First Ctrl-C requests a cooperative stop; the second one interrupts."""
        if threading.current_thread() is not threading.main_thread():
            return None

        def _handler(signum, frame):
            if cancel.cancelled:
                raise KeyboardInterrupt
            logger.warning("Interrupt received, stopping at the next checkpoint")
            cancel.cancel()

        return signal.signal(signal.SIGINT, _handler)


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    return KubeForgeCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
