#!/usr/bin/env python
"""
WFES: Wright-Fisher model solver.

Prints one comma-separated line with the population size, the model
parameters, and the probabilities and conditional times of extinction
and fixation, starting from a single copy of 'A'.  Per-state vectors can
optionally be written to files.
"""

import argparse
import sys

import numpy as np

from solver_config import SolverConfig
from sparse import SolverPhaseError
from wfes import solve_wright_fisher
from wright_fisher import ModelParameters, ParameterValidationError


def format_summary(params: ModelParameters, stats) -> str:
    """Summary line: N, s, u, v, h followed by the five statistics."""
    values = [params.selection, params.forward_mutation_rate,
              params.backward_mutation_rate, params.dominance,
              stats.probability_extinction, stats.probability_fixation,
              stats.time_extinction, stats.time_fixation,
              stats.count_before_extinction]
    return ",".join([str(params.population_size)] + [f"{x:g}" for x in values])


def write_vector(path, x: np.ndarray) -> None:
    """Write a per-state vector as one comma-separated line."""
    with open(path, 'w') as f:
        f.write(",".join(f"{value:g}" for value in x) + "\n")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='WFES: Wright-Fisher model solver',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('-N', '--population_size', type=int, required=True,
                        help='Population size')
    parser.add_argument('-s', '--selection_coefficient', type=float, required=True,
                        help='Selection coefficient')
    parser.add_argument('-u', '--forward_mutation_rate', type=float, required=True,
                        help='Mutation rate from A to a')
    parser.add_argument('-v', '--backward_mutation_rate', type=float, required=True,
                        help='Mutation rate from a to A')
    parser.add_argument('-d', '--dominance_coefficient', type=float, required=True,
                        help='Proportion of selection Aa receives')
    parser.add_argument('-z', '--zero_threshold', type=float, default=1e-30,
                        help='Transition probabilities below this are treated as zero')
    parser.add_argument('-g', '--generations_file', '--sojourn_time_file',
                        dest='generations_file', default=None,
                        help='Output file for the sojourn time vector')
    parser.add_argument('-e', '--extinction_file', default=None,
                        help='Output file for the extinction probability vector')
    parser.add_argument('-f', '--fixation_file', default=None,
                        help='Output file for the fixation probability vector')
    parser.add_argument('--n_jobs', type=int, default=1,
                        help='Number of processes building the matrix (-1 for all cores)')
    parser.add_argument('--force', action='store_true',
                        help='Skip the population size and mutation rate checks')
    parser.add_argument('--verbose', action='store_true',
                        help='Print timing information')

    return parser, parser.parse_args(argv)


def main(argv=None):
    parser, args = parse_arguments(argv)

    try:
        params = ModelParameters(
            population_size=args.population_size,
            selection=args.selection_coefficient,
            forward_mutation_rate=args.forward_mutation_rate,
            backward_mutation_rate=args.backward_mutation_rate,
            dominance=args.dominance_coefficient,
        )
        config = SolverConfig(zero_threshold=args.zero_threshold, n_jobs=args.n_jobs)
    except ValueError as e:
        parser.error(str(e))

    try:
        params.check_operating_range(force=args.force)
    except ParameterValidationError as e:
        parser.error(f"{e}\nUse `--force` to override")

    try:
        stats = solve_wright_fisher(params, config, force=args.force, verbose=args.verbose)
    except SolverPhaseError as e:
        print(e, file=sys.stderr)
        sys.exit(int(e.phase))

    print(format_summary(params, stats))

    if args.generations_file:
        write_vector(args.generations_file, stats.N)
    if args.extinction_file:
        write_vector(args.extinction_file, stats.B1)
    if args.fixation_file:
        write_vector(args.fixation_file, stats.B2)


if __name__ == "__main__":
    main()
