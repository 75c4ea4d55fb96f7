import argparse
import sys
from pathlib import Path

# Add project root to path for robust execution
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from chaincrf.io_utils import load_corpus, load_model, save_corpus
from chaincrf.lattice import NumericalInstabilityError


def main():
    """
    Main command-line interface for tagging text with a trained CRF.

    This script performs the following steps:
    1.  Loads a trained model saved by `scripts/train_model.py`.
    2.  Loads the input corpus in column format. With `--tagged`, the last
        column is treated as a gold tag and ignored.
    3.  Decodes every sequence with the Viterbi algorithm.
    4.  Writes the corpus back out with the predicted tag as the last column.
    """
    parser = argparse.ArgumentParser(
        description="Tag a column-format corpus with a trained linear-chain CRF.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--input",
        required=True,
        help="Path to the input corpus (one token per line, blank line between sequences)."
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Path to write the tagged corpus."
    )
    parser.add_argument(
        "--model",
        required=True,
        help="Path to the trained model JSON file."
    )
    parser.add_argument(
        "--tagged",
        action="store_true",
        help="The input's last column is a gold tag; drop it before decoding."
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output."
    )
    args = parser.parse_args()

    try:
        print(f"Loading model from {args.model}...")
        model = load_model(args.model)
        model.config.verbose = not args.quiet

        print(f"Loading corpus from {args.input}...")
        corpus = load_corpus(args.input, tagged=args.tagged)

        print(f"Tagging {len(corpus)} sequences...")
        tagged = model.predict(corpus)

        save_corpus(args.output, tagged)
        print(f"\nSuccessfully wrote tagged corpus to {args.output}")

    except (FileNotFoundError, ValueError, TypeError, KeyError, RuntimeError, NumericalInstabilityError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
