import json
import argparse
import logging
import os
import sys
import tempfile
import time

from betsense.config import SETTINGS
from betsense.errors import BetSenseError
from betsense.pipeline import Analyzer
from betsense.schemas import AnalysisRequest, MatchOdds
from betsense.sports import REGISTRY
from betsense.validator import ValidationFailure


def atomic_write_json(data, path):
    target_dir = os.path.dirname(path)
    if target_dir:
        os.makedirs(target_dir, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=target_dir or ".", suffix=".json")
    try:
        with os.fdopen(fd, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True, default=str)

        # Robust replace for Windows
        for i in range(5):
            try:
                os.replace(temp_path, path)
                return
            except PermissionError:
                time.sleep(0.1)

        # Final attempt
        os.replace(temp_path, path)

    except Exception:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise


def build_request(args) -> AnalysisRequest:
    odds = None
    if args.odds_home is not None or args.odds_away is not None:
        odds = MatchOdds(home=args.odds_home, draw=args.odds_draw, away=args.odds_away,
                         format=args.odds_format)
    context = json.loads(args.context) if args.context else {}
    return AnalysisRequest(
        sport=args.sport,
        home_team=args.home or "",
        away_team=args.away or "",
        league=args.league,
        match_date=args.date,
        odds=odds,
        context=context,
    )


def run_analysis(args) -> bool:
    request = build_request(args)
    profile = REGISTRY.resolve(request.sport)
    print(f"🔎 Analyzing {request.home_team} vs {request.away_team} ({profile.display_name})...")

    outcome = Analyzer().analyze(request)
    if isinstance(outcome, ValidationFailure):
        report = {"accepted": False, "error": outcome.to_dict()}
    else:
        report = {"accepted": True, "result": outcome.to_response()}

    if args.out:
        atomic_write_json(report, args.out)
    print(json.dumps(report, indent=2))
    if report["accepted"]:
        print("✅ Analysis accepted")
    else:
        print(f"❌ Analysis rejected: {outcome.code.value}")
    return report["accepted"]


def list_sports():
    for category, profiles in REGISTRY.grouped_by_category().items():
        print(f"{category}:")
        for p in profiles:
            draw = "draw" if p.terminology.has_draw else "no draw"
            print(f"  {p.id:<28} {p.display_name} ({draw})")


def serve(host: str, port: int):
    import uvicorn
    uvicorn.run("betsense.server:app", host=host, port=port, log_level=SETTINGS.log_level.lower())


def main():
    parser = argparse.ArgumentParser(description="BetSense match analysis")
    parser.add_argument("--analyze", action="store_true", help="Analyze one match")
    parser.add_argument("--sports", action="store_true", help="List supported sports")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--sport", type=str, default="soccer")
    parser.add_argument("--home", type=str)
    parser.add_argument("--away", type=str)
    parser.add_argument("--league", type=str)
    parser.add_argument("--date", type=str)
    parser.add_argument("--odds-home", type=float)
    parser.add_argument("--odds-draw", type=float)
    parser.add_argument("--odds-away", type=float)
    parser.add_argument("--odds-format", type=str, default="decimal", choices=["decimal", "american"])
    parser.add_argument("--context", type=str, help="Extra match facts as a JSON object")
    parser.add_argument("--out", type=str, help="Write the analysis report to this JSON file")
    parser.add_argument("--host", type=str, default=SETTINGS.host)
    parser.add_argument("--port", type=int, default=SETTINGS.port)
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, SETTINGS.log_level, logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        if args.sports:
            list_sports()
            sys.exit(0)
        if args.serve:
            serve(args.host, args.port)
            sys.exit(0)
        if args.analyze:
            success = run_analysis(args)
            sys.exit(0 if success else 1)
        parser.print_help()
        sys.exit(0)
    except (BetSenseError, ValueError) as e:
        print(f"❌ FATAL ERROR: {str(e)}"); sys.exit(1)


if __name__ == "__main__":
    main()
