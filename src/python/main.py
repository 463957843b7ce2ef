#!/usr/bin/env python3
"""
===============================================================================
PATCHED CONICS MISSION PLANNER - MAIN ENTRY POINT
===============================================================================
Loads a planetary system catalog, reports transfer windows and runs a
scripted mission through the maneuver calculus and rocket-equation ledger.

USAGE:
    python main.py                          # Default Kerbol system and mission
    python main.py --windows Kerbin         # Transfer windows from Kerbin
    python main.py --windows Kerbin --time 3.2e6
    python main.py --mission my_mission.yaml --csv ledger.csv
    python main.py --plot output/mission_orbits.png

OUTPUTS:
    stdout     - Transfer window table and mission ledger
    --csv      - Mission ledger as CSV
    --plot     - Orbit plot of the mission's final leg

DEPENDENCIES:
    numpy, matplotlib, pandas, pyyaml
    Install: pip install numpy matplotlib pandas pyyaml

===============================================================================
"""

import sys
import argparse
import logging
from pathlib import Path

import numpy as np
import pandas as pd
import yaml

# ---------------------------------------------------------------------------
# Path setup: ensure all project modules are importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# ---------------------------------------------------------------------------
# Project imports
# ---------------------------------------------------------------------------
from core.constants import RAD2DEG
from dynamics.bodies import PlanetarySystem, load_planetary_system
from guidance.mission import Mission, build_mission
from visualization.orbit_plots import save_orbit_plot

CONFIG_DIR = PROJECT_ROOT.parent.parent / 'config'

logger = logging.getLogger('PATCHED_CONICS')


def load_config(config_path: str = None) -> dict:
    """
    Load a mission script from YAML.

    Args:
        config_path: Path to YAML mission script. Defaults to
            config/mission_config.yaml

    Returns:
        Dictionary of mission configuration parameters
    """
    if config_path is None:
        config_path = str(CONFIG_DIR / 'mission_config.yaml')

    logger.info("Loading mission script from: %s", config_path)
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    logger.info("Mission: %s", config['mission']['name'])
    return config


def transfer_window_table(system: PlanetarySystem, body_name: str, time: float) -> pd.DataFrame:
    """
    Transfer windows from *body_name* to each of its siblings.

    Returns
    -------
    pd.DataFrame
        Columns: target, phase_angle_deg, wait_time, synodic_period
    """
    source = system[body_name]
    if source.orbit is None:
        raise ValueError(f"{body_name} has no orbit, so it has no transfer windows")

    rows = []
    for target in system.siblings(body_name):
        rows.append({
            "target": target.name,
            "phase_angle_deg": source.orbit.get_angular_alignment(target.orbit) * RAD2DEG,
            "wait_time": source.orbit.get_time_to_next_transfer_window(target.orbit, time),
            "synodic_period": source.orbit.get_synodic_period(target.orbit),
        })
    return pd.DataFrame(rows)


def run_mission(config: dict, system: PlanetarySystem) -> Mission:
    mission = build_mission(config, system)
    ledger = mission.to_dataframe()

    print("\n" + "=" * 70)
    print(f"  MISSION: {mission.description}")
    print("=" * 70)
    with pd.option_context('display.max_columns', None, 'display.width', 200):
        print(ledger[['description', 'maneuver', 'delta_v', 'elapsed_time',
                      'mass', 'available_delta_v']].to_string(index=False))
    print("-" * 70)
    print(f"  Total delta-V:      {mission.total_delta_v:10.1f} m/s")
    print(f"  Remaining delta-V:  {mission.vessel.available_delta_v:10.1f} m/s")
    burn_time = mission.total_elapsed_time
    print(f"  Total burn time:    {burn_time:10.1f} s" if np.isfinite(burn_time)
          else "  Total burn time:    never (insufficient propellant)")
    print(f"  Final orbit:        {mission.orbit}")
    print("=" * 70)
    return mission


def main():
    """
    Main entry point. Parses command line arguments and runs
    the requested report(s).
    """
    parser = argparse.ArgumentParser(
        description='Patched-conic mission planner',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                          Default system and mission
  python main.py --windows Kerbin         Transfer windows from Kerbin
  python main.py --no-mission --windows Duna --time 1e7
        """
    )

    parser.add_argument('--system', type=str, default=str(CONFIG_DIR / 'kerbol_system.yaml'),
                        help='Path to planetary system YAML')
    parser.add_argument('--mission', type=str, default=None,
                        help='Path to mission script YAML')
    parser.add_argument('--no-mission', action='store_true',
                        help='Skip running the mission script')
    parser.add_argument('--windows', type=str, default=None, metavar='BODY',
                        help='Report transfer windows from BODY to its siblings')
    parser.add_argument('--time', type=float, default=0.0,
                        help='Time since epoch (s) for the transfer window search')
    parser.add_argument('--csv', type=str, default=None,
                        help='Write the mission ledger to this CSV file')
    parser.add_argument('--plot', type=str, default=None,
                        help='Save a plot of the final mission orbit to this path')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    system = load_planetary_system(args.system)

    if args.windows:
        table = transfer_window_table(system, args.windows, args.time)
        print("\n" + "=" * 70)
        print(f"  TRANSFER WINDOWS FROM {args.windows.upper()} (t = {args.time:.1f} s)")
        print("=" * 70)
        print(table.to_string(index=False))

    if args.no_mission:
        return

    mission = run_mission(load_config(args.mission), system)

    if args.csv:
        mission.to_dataframe().to_csv(args.csv, index=False)
        logger.info("Ledger written to %s", args.csv)

    if args.plot:
        Path(args.plot).parent.mkdir(parents=True, exist_ok=True)
        save_orbit_plot([mission.orbit], args.plot, title=mission.description)
        logger.info("Orbit plot written to %s", args.plot)


if __name__ == '__main__':
    main()
