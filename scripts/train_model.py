import argparse
import sys
from dataclasses import replace
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from chaincrf.config import CRFConfig, load_config
from chaincrf.evaluation import evaluate
from chaincrf.io_utils import load_corpus, save_model
from chaincrf.model import CRF
from chaincrf.optimizer import TrainingError
from chaincrf.objective import NumericalInstabilityError
from chaincrf.templates import DEFAULT_TEMPLATES, load_templates


def resolve_config(args: argparse.Namespace) -> CRFConfig:
    """
    Builds the training configuration from the config file and CLI overrides.

    Command-line values win over the file, which wins over the defaults. The
    merged configuration is validated again, so a negative `--sigma` is
    rejected here before any data is read.
    """
    cfg = load_config(args.config) if args.config else CRFConfig()
    overrides = {}
    if args.sigma is not None:
        overrides["sigma"] = args.sigma
    if args.iterations is not None:
        overrides["max_iterations"] = args.iterations
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.templates is not None:
        overrides["templates"] = args.templates
    if args.quiet:
        overrides["verbose"] = False
    return replace(cfg, **overrides)


def main():
    """
    Main entry point for the command-line model training script.

    The script:
    1.  Parses the corpus, template and output paths and the training
        parameters.
    2.  Loads the configuration (`config.yaml` when given) and applies the
        command-line overrides.
    3.  Loads the feature templates, falling back to the built-in defaults.
    4.  Loads the tagged training corpus and trains the CRF.
    5.  Reports the training-set accuracy and saves the model as JSON.
    """
    parser = argparse.ArgumentParser(
        description="Train a linear-chain CRF tagger on a column-format corpus.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--corpus", type=str, required=True, help="Path to the tagged training corpus.")
    parser.add_argument("--model", type=str, required=True, help="Output path for the trained model JSON.")
    parser.add_argument("--templates", type=str, default=None, help="Path to a feature template file.")
    parser.add_argument("--config", type=str, default=None, help="Path to the configuration YAML file.")
    parser.add_argument("--sigma", type=float, default=None, help="Regularization parameter (overrides the config).")
    parser.add_argument("--iterations", type=int, default=None, help="Maximum optimizer iterations (overrides the config).")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the starting point (overrides the config).")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output.")
    args = parser.parse_args()

    try:
        cfg = resolve_config(args)
        templates = load_templates(cfg.templates) if cfg.templates else list(DEFAULT_TEMPLATES)
        corpus = load_corpus(args.corpus, tagged=True)
        if not corpus:
            raise ValueError(f"No training sequences found in {args.corpus}.")
        print(f"Loaded {len(corpus)} training sequences.")

        model = CRF(templates, cfg).train(corpus)

        report = evaluate(corpus, model.predict(corpus))
        print(f"Training set accuracy: {report['accuracy']:.2%}")

        save_model(args.model, model)
        print(f"Successfully saved model to {args.model}")

    except (FileNotFoundError, ValueError, TypeError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    except (TrainingError, NumericalInstabilityError) as e:
        print(f"\n[ERROR] Training failed, no model was written: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
