#!/usr/bin/env python3
"""
poremodel-info: summarise a text pore model, optionally calibrated with
user-supplied scaling coefficients, and export its state table as TSV.
"""

import argparse
import sys

from poremodel.cli.common import (
    add_alphabet_args,
    add_output_args,
    add_scaling_args,
    add_verbose_args,
    add_version_args,
    scaling_from_args,
)
from poremodel.core.alphabet import get_alphabet
from poremodel.core.errors import PoreModelError
from poremodel.core.model_io import load_model


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Summarise a pore model file',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    add_version_args(parser)
    parser.add_argument('model', help='Text model file')
    add_alphabet_args(parser)
    add_scaling_args(parser)
    parser.add_argument('--calibrated', action='store_true',
                        help='Bake the model and report calibrated parameters')
    add_output_args(parser, required=False,
                    help_text='Write the state table to this TSV file')
    add_verbose_args(parser)

    return parser.parse_args(argv)


def summarize(model, scaled: bool = False) -> str:
    """Multi-line text summary of a model."""
    df = model.to_dataframe(scaled=scaled)
    lines = [
        f"Model:        {model.name or '(unnamed)'}",
        f"Source:       {model.model_filename}",
        f"Alphabet:     {model.alphabet.name} ({model.alphabet.symbols})",
        f"k:            {model.k}",
        f"States:       {model.num_states:,}",
        f"Shift offset: {model.shift_offset:.2f}",
        f"Calibrated:   {'yes' if model.is_scaled else 'no'}",
    ]
    if scaled:
        params = ', '.join(f"{name}={value:g}" for name, value in model.scaling_parameters().items())
        lines.append(f"Scaling:      {params}")

    for field in ('level_mean', 'level_stdv', 'sd_mean', 'sd_stdv'):
        col = df[field]
        lines.append(
            f"  {field:<11} min={col.min():.3f} mean={col.mean():.3f} max={col.max():.3f}"
        )

    lo = df.loc[df['level_mean'].idxmin(), 'kmer']
    hi = df.loc[df['level_mean'].idxmax(), 'kmer']
    lines.append(f"  lowest level: {lo}, highest level: {hi}")
    return '\n'.join(lines)


def main(argv=None):
    args = parse_args(argv)

    try:
        model = load_model(args.model, get_alphabet(args.alphabet), verbose=args.verbose)
        scaling = scaling_from_args(args)
        if scaling:
            model.set_scaling(**scaling)
        scaled = args.calibrated or bool(scaling)
        if scaled:
            model.bake()
    except (PoreModelError, OSError) as e:
        print(f"Error: {e}")
        return 1

    print(summarize(model, scaled=scaled))

    if args.output:
        model.to_dataframe(scaled=scaled).to_csv(args.output, sep='\t')
        print(f"State table written to: {args.output}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
