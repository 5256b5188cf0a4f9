"""Shared argparse argument factories for poremodel CLI tools.

Each function adds a group of related arguments to an ArgumentParser.
Default values can be overridden per-script where needed.
"""

import argparse

from poremodel.config import PoreModelConfig
from poremodel.core.alphabet import ALPHABETS
from poremodel.core.fast5_reader import DEFAULT_BASECALL_GROUP
from poremodel.core.model_io import DEFAULT_KNOWN_PREFIX


def add_alphabet_args(parser: argparse.ArgumentParser,
                      default: str = 'dna') -> None:
    """Add --alphabet argument."""
    parser.add_argument(
        '--alphabet', '-a',
        choices=sorted(ALPHABETS),
        default=default,
        help=f"k-mer alphabet (default: {default})"
    )


def add_fast5_args(parser: argparse.ArgumentParser,
                   known_prefix: str = DEFAULT_KNOWN_PREFIX,
                   basecall_group: str = DEFAULT_BASECALL_GROUP) -> None:
    """Add fast5 model lookup arguments (--known-prefix, --basecall-group, --strand)."""
    parser.add_argument(
        '--known-prefix', default=known_prefix,
        help=f"Path prefix stripped from fast5 model file names (default: {known_prefix})"
    )
    parser.add_argument(
        '--basecall-group', default=basecall_group,
        help=f"fast5 analysis group holding the model (default: {basecall_group})"
    )
    parser.add_argument(
        '--strand', choices=['template', 'complement', 'both'], default='both',
        help="Strand model(s) to extract (default: both)"
    )


def add_scaling_args(parser: argparse.ArgumentParser) -> None:
    """Add calibration coefficient overrides (--shift, --scale, --drift, --var, --scale-sd, --var-sd)."""
    group = parser.add_argument_group('calibration')
    group.add_argument('--shift', type=float, default=None, help="Level shift")
    group.add_argument('--scale', type=float, default=None, help="Level scale")
    group.add_argument('--drift', type=float, default=None, help="Drift (stored, not applied)")
    group.add_argument('--var', type=float, default=None, help="Level stdv multiplier")
    group.add_argument('--scale-sd', type=float, default=None, help="Spread mean multiplier")
    group.add_argument('--var-sd', type=float, default=None, help="Spread shape multiplier")


def scaling_from_args(args: argparse.Namespace) -> dict:
    """Collect the calibration coefficients given on the command line."""
    names = ('shift', 'scale', 'drift', 'var', 'scale_sd', 'var_sd')
    return {name: getattr(args, name) for name in names
            if getattr(args, name, None) is not None}


def add_output_args(parser: argparse.ArgumentParser,
                    required: bool = True,
                    help_text: str = "Output directory") -> None:
    """Add -o/--output argument."""
    parser.add_argument(
        '-o', '--output', required=required,
        help=help_text
    )


def add_verbose_args(parser: argparse.ArgumentParser) -> None:
    """Add --verbose flag."""
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help="Verbose output"
    )


def add_version_args(parser: argparse.ArgumentParser) -> None:
    """Add --version flag."""
    from poremodel import __version__
    parser.add_argument(
        '--version', action='version',
        version=f'%(prog)s {__version__}'
    )


def config_from_args(args: argparse.Namespace) -> PoreModelConfig:
    """Build a PoreModelConfig from parsed arguments, keeping defaults for absent flags."""
    defaults = PoreModelConfig()
    return PoreModelConfig(
        known_prefix=getattr(args, 'known_prefix', defaults.known_prefix),
        basecall_group=getattr(args, 'basecall_group', defaults.basecall_group),
        alphabet=getattr(args, 'alphabet', defaults.alphabet),
        verbose=getattr(args, 'verbose', defaults.verbose),
    )
