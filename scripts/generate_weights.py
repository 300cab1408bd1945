#!/usr/bin/env python3
"""
Weight generation utility.
Loads model data, draws random weights for any missing layers and writes the
complete model (vocabulary, intents, weights) to a JSON file so later starts
reuse the same network.
"""

import argparse
import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from memo_resolver.core.config import MODEL_DATA_PATH, WEIGHT_INIT_RANGE, get_hidden_layer_sizes
from memo_resolver.core.errors import ConfigurationError
from memo_resolver.model.weights import WeightStore


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate and save network weights")
    parser.add_argument("--source", default=MODEL_DATA_PATH,
                        help="Model data to start from (bundled default if missing)")
    parser.add_argument("--output", default=MODEL_DATA_PATH, help="Where to write the full model")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible weights")
    parser.add_argument("--hidden", default=None,
                        help="Comma separated hidden layer sizes (default from HIDDEN_LAYER_SIZES)")
    parser.add_argument("--init-range", type=float, default=WEIGHT_INIT_RANGE,
                        help="Uniform initialisation bound")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    hidden = [int(size) for size in args.hidden.split(",")] if args.hidden else get_hidden_layer_sizes()

    try:
        store = WeightStore.load(args.source, hidden_sizes=hidden, seed=args.seed, init_range=args.init_range)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 1

    if not store.generated:
        print(f"Model at {args.source} already has weights; writing a copy")

    store.save(args.output)
    print(f"✓ Wrote network {store.network.shape} ({store.network.neuron_count} neurons) to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
