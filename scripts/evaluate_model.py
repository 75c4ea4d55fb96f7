"""Command-line script for evaluating a trained model against gold tags.

The script decodes a tagged reference corpus with the model (ignoring the gold
tags during decoding) and compares the predictions with the reference:

-   **Accuracy**: the fraction of tokens whose predicted tag matches the gold
    tag.
-   **Per-tag scores**: precision, recall and F1 for every tag, printed as
    JSON.
-   **Disagreements**: optionally written to a CSV file for error analysis,
    one row per mistagged token.
"""
import argparse
import csv
import json
import sys
from pathlib import Path

# Add project root to path to allow for package imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from chaincrf.evaluation import evaluate
from chaincrf.io_utils import load_corpus, load_model
from chaincrf.lattice import NumericalInstabilityError

def main():
    """Main entry point for the command-line model evaluation script."""
    parser = argparse.ArgumentParser(
        description="Evaluate a trained CRF tagger against a gold-tagged corpus.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--gold", required=True, help="Path to the gold-tagged corpus in column format.")
    parser.add_argument("--model", required=True, help="Path to the trained model JSON file.")
    parser.add_argument("--disagreements-out", help="Optional: Path to write a detailed disagreements CSV file.")
    args = parser.parse_args()

    try:
        print("Loading files...")
        model = load_model(args.model)
        gold = load_corpus(args.gold, tagged=True)

        print(f"Decoding {len(gold)} sequences...")
        predicted = model.predict(gold)
        report = evaluate(gold, predicted)

        print("\n--- Comparison Metrics (vs. Gold) ---")
        print(f"Accuracy: {report['accuracy']:.2%} over {report['tokens']} tokens")
        if report["scores"]:
            print(json.dumps(report["scores"], indent=2))

        if args.disagreements_out and report["disagreements"]:
            Path(args.disagreements_out).parent.mkdir(parents=True, exist_ok=True)
            print(f"\nWriting {len(report['disagreements'])} disagreements to {args.disagreements_out}...")
            with open(args.disagreements_out, "w", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=["sequence", "position", "word", "gold", "predicted"])
                writer.writeheader()
                writer.writerows(report["disagreements"])

    except (FileNotFoundError, ValueError, TypeError, KeyError, RuntimeError, NumericalInstabilityError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
