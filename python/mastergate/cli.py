"""Command-line interface for mastergate."""
import argparse
import json
import logging
import sys
from pathlib import Path

from .conflicts import generate_recommendations, suggest_resolutions
from .distributions import get_available_distributions
from .gate import QualityGate
from .rules import get_available_rules


def _load_json(path: str, label: str) -> dict:
    json_path = Path(path)
    if not json_path.exists():
        print(f"Error: {label} not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        data = json.loads(json_path.read_text())
    except json.JSONDecodeError as e:
        print(f"Error: {label} is not valid JSON: {e}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"Error: {label} must contain a JSON object", file=sys.stderr)
        sys.exit(1)
    return data


def assess_command(args):
    """Assess a signal vector command."""
    signals = _load_json(args.signals, "Signals file")

    gate = QualityGate()
    result = gate.assess(signals, model_ids=args.model or [], confidence=args.confidence)
    usable = result.can_proceed and result.should_trust_ml

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"\n{'='*60}")
        print("  Signal Quality Report")
        print(f"{'='*60}\n")
        print(f"File: {Path(args.signals).resolve()}")
        print(f"Status: {result.status.value.upper()}")
        print(f"Trust ML: {'yes' if result.should_trust_ml else 'no'}")

        if result.confidence:
            c = result.confidence
            print(f"Confidence: {c.original} -> {c.adjusted} (-{c.reduction})")

        if result.layers:
            print("\nLayers:")
            for layer in result.layers:
                icon = "✓" if layer.passed else "✗"
                print(f"  {icon} {layer.name}: {layer.score:.0f}% ({layer.details['status']})")

        if result.consistency and result.consistency.violations:
            print("\nViolations:")
            for violation in result.consistency.violations:
                print(f"  • [{violation.severity.value}] {violation.rule_id}: {violation.message}")

        if result.warnings:
            print("\nWarnings:")
            for warning in result.warnings:
                print(f"  • {warning}")

        print(f"\n{'='*60}\n")

    sys.exit(0 if usable else 1)


def conflicts_command(args):
    """Check processing parameters command."""
    params = _load_json(args.params, "Parameters file")
    intent = _load_json(args.intent, "Intent file") if args.intent else None

    gate = QualityGate()
    try:
        report = gate.check_job(None, params, intent, preset_id=args.preset)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    resolutions = suggest_resolutions(params, report.conflicts)

    if args.json:
        output = report.to_dict()
        output["suggestedResolutions"] = resolutions
        print(json.dumps(output, indent=2))
    else:
        print(f"\n{'='*60}")
        print("  Parameter Conflict Report")
        print(f"{'='*60}\n")
        if args.preset:
            print(f"Preset: {args.preset}")
        print(f"Overall severity: {report.overall_severity.value}")
        print(f"Can proceed: {'yes' if report.can_proceed else 'no'}")

        if report.conflicts:
            print("\nConflicts:")
            for conflict in report.conflicts:
                icon = "✗" if conflict.severity.value in ("BLOCKING", "HIGH") else "•"
                print(f"  {icon} [{conflict.severity.value}] {conflict.name}")

            print("\nRecommendations:")
            for line in generate_recommendations(report.conflicts):
                print(f"  {line}")

        if resolutions["hasSuggestions"]:
            print("\nSuggested changes:")
            for key, value in resolutions["suggestions"].items():
                print(f"  {key}: {value}")

        print(f"\n{'='*60}\n")

    sys.exit(0 if report.can_proceed else 1)


def rules_command(args):
    """List consistency rules command."""
    rules = get_available_rules()
    if args.json:
        print(json.dumps(rules, indent=2))
        return

    print(f"Consistency rules ({len(rules)}):\n")
    for rule in rules:
        print(f"  {rule['id']}")
        print(f"      {rule['description']}")
        print(f"      signals: {', '.join(rule['signals'])}")


def models_command(args):
    """List training distributions command."""
    models = get_available_distributions()
    if args.json:
        print(json.dumps(models, indent=2))
        return

    print(f"Training distributions ({len(models)}):\n")
    for model_id, info in models.items():
        print(f"  {model_id} v{info['version']} ({info['trainingSize']} samples)")
        print(f"      signals: {', '.join(info['signals'])}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="mastergate",
        description="Cross-signal consistency, drift and parameter conflict checks"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Assess command
    assess_parser = subparsers.add_parser("assess", help="Assess a signal vector")
    assess_parser.add_argument("signals", help="JSON file with the signal vector")
    assess_parser.add_argument("-m", "--model", action="append", help="Model to check drift against (repeatable)")
    assess_parser.add_argument("-c", "--confidence", type=float, help="ML confidence to adjust")
    assess_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    assess_parser.set_defaults(func=assess_command)

    # Conflicts command
    conflicts_parser = subparsers.add_parser("conflicts", help="Check processing parameters for conflicts")
    conflicts_parser.add_argument("params", help="JSON file with proposed parameters")
    conflicts_parser.add_argument("-p", "--preset", help="Preset the parameters override")
    conflicts_parser.add_argument("-i", "--intent", help="JSON file with intent flags")
    conflicts_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    conflicts_parser.set_defaults(func=conflicts_command)

    # Rules command
    rules_parser = subparsers.add_parser("rules", help="List consistency rules")
    rules_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    rules_parser.set_defaults(func=rules_command)

    # Models command
    models_parser = subparsers.add_parser("models", help="List training distributions")
    models_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    models_parser.set_defaults(func=models_command)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
