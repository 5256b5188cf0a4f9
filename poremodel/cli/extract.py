#!/usr/bin/env python3
"""
poremodel-extract: write the per-read pore models stored in basecalled
fast5 files as text model files.

Each strand model is loaded with its scaling coefficients, named from the
basecaller's model file path, and written (raw parameters only) to
<outdir>/<read>.<strand>.model. <read> is the file name without its
extension, prefixed by its subdirectories when found under a directory
input. Inputs that would share a <read> name are rejected up front.
"""

import argparse
import glob
import os
import sys
from collections import defaultdict
from typing import Dict, List, Tuple

from tqdm import tqdm

from poremodel.cli.common import (
    add_alphabet_args,
    add_fast5_args,
    add_output_args,
    add_verbose_args,
    add_version_args,
    config_from_args,
)
from poremodel.core.errors import PoreModelError
from poremodel.core.fast5_reader import Fast5Reader, STRAND_NAMES
from poremodel.core.model_io import load_model_from_fast5, save_model


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Extract per-read pore models from basecalled fast5 files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # All fast5 files in a directory, both strands
  poremodel-extract -i reads/ -o models/

  # Template models only, keeping the full model file path in the name
  poremodel-extract -i read1.fast5 read2.fast5 -o models/ --strand template --known-prefix ""
'''
    )

    add_version_args(parser)
    parser.add_argument('-i', '--input', nargs='+', required=True,
                        help='fast5 files or directories to search recursively')
    add_output_args(parser)
    add_alphabet_args(parser)
    add_fast5_args(parser)
    add_verbose_args(parser)

    return parser.parse_args(argv)


def read_name_for(fast5_path: str, root: str = None) -> str:
    """
    Output name stem for a fast5 file.

    Files found under a directory input are named by their path relative to
    that directory, with separators replaced by '_', so reads with the same
    file name in different subdirectories get distinct outputs.
    """
    name = os.path.relpath(fast5_path, root) if root else os.path.basename(fast5_path)
    name = os.path.splitext(name)[0]
    return name.replace(os.sep, '_')


def find_fast5_files(inputs: List[str]) -> List[Tuple[str, str]]:
    """Expand directories into the .fast5 files they contain, as (path, read_name) pairs."""
    files = []
    for path in inputs:
        if os.path.isdir(path):
            for found in sorted(glob.glob(os.path.join(path, '**', '*.fast5'), recursive=True)):
                files.append((found, read_name_for(found, path)))
        else:
            files.append((path, read_name_for(path)))
    return files


def find_name_collisions(files: List[Tuple[str, str]]) -> Dict[str, List[str]]:
    """Read names shared by more than one input file."""
    by_name = defaultdict(list)
    for path, read_name in files:
        by_name[read_name].append(path)
    return {name: paths for name, paths in by_name.items() if len(paths) > 1}


def selected_strands(strand_arg: str) -> List[int]:
    if strand_arg == 'both':
        return list(range(len(STRAND_NAMES)))
    return [STRAND_NAMES.index(strand_arg)]


def extract_file(fast5_path: str, outdir: str, strands: List[int], config,
                 read_name: str = None) -> List[str]:
    """
    Write the models of one fast5 file.

    Strands without a stored model are skipped.

    Returns:
        Paths of the model files written
    """
    alphabet = config.get_alphabet()
    if read_name is None:
        read_name = read_name_for(fast5_path)
    written = []

    with Fast5Reader(fast5_path, basecall_group=config.basecall_group) as reader:
        for strand in strands:
            if not reader.has_model(strand):
                if config.verbose:
                    print(f"  {read_name}: no {STRAND_NAMES[strand]} model, skipping")
                continue
            model = load_model_from_fast5(reader, strand, alphabet,
                                          known_prefix=config.known_prefix)
            out_path = os.path.join(outdir, f"{read_name}.{STRAND_NAMES[strand]}.model")
            save_model(model, out_path)
            written.append(out_path)

    return written


def main(argv=None):
    args = parse_args(argv)
    config = config_from_args(args)
    strands = selected_strands(args.strand)

    files = find_fast5_files(args.input)
    if not files:
        print("No fast5 files found")
        return 1

    collisions = find_name_collisions(files)
    if collisions:
        for read_name, paths in sorted(collisions.items()):
            print(f"Error: {len(paths)} inputs would write models named '{read_name}': {', '.join(paths)}")
        return 1

    os.makedirs(args.output, exist_ok=True)

    n_models = 0
    failed = []
    for fast5_path, read_name in tqdm(files, desc="Extracting models", unit="file",
                                       disable=not config.verbose):
        try:
            n_models += len(extract_file(fast5_path, args.output, strands, config, read_name))
        except (PoreModelError, OSError) as e:
            failed.append(fast5_path)
            print(f"\nError extracting {fast5_path}: {e}")

    print(f"Wrote {n_models} models from {len(files) - len(failed)}/{len(files)} files to {args.output}")
    if failed:
        print(f"Warning: {len(failed)} file(s) failed")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
