"""tier command: review depth recommendation for the pending change set."""

from ..engine.changes import ChangeSetAnalyzer
from ..engine.tiers import ReviewTierClassifier, TierThresholds
from ..utils import colorize
from ._helpers import print_json, project_root

TIER_COLORS = {"skip": "dim", "quick": "green", "standard": "yellow", "full": "red"}


def cmd_tier(args):
    config = args._config
    changes = ChangeSetAnalyzer(project_root()).get_changed_files()
    classifier = ReviewTierClassifier(
        thresholds=TierThresholds.from_config(config),
        critical_paths=config.get("critical_paths") or [],
    )
    recommendation = classifier.classify_changes(changes)

    if args.json:
        print_json(recommendation.to_dict())
        return

    tier = str(recommendation.tier)
    print(f"\n  Tier: {colorize(tier.upper(), TIER_COLORS.get(tier, 'bold'))}")
    print(colorize(f"  {recommendation.reason}", "dim"))
    breakdown = ", ".join(
        f"{file_type}: {count}"
        for file_type, count in recommendation.metrics.file_type_breakdown.items()
        if count
    )
    if breakdown:
        print(colorize(f"  {breakdown}", "dim"))
    print()
